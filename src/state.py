"""Operator state - thread-safe holder for Kubernetes clients and the reconciler.

One instance is created at startup and handed to every handler through
kopf's `memo`, so nothing here lives in a module global.
"""

import threading
from dataclasses import dataclass, field

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config

from config import OperatorConfig
from ratelimit import RateLimiter
from reconciler import ManagedClusterReconciler
from store import KubeObjectStore


@dataclass
class OperatorState:
    """Thread-safe operator state container.

    This class provides thread-safe access to shared operator resources:
    - Kubernetes API client
    - Object store (with read cache and rate limiter)
    - ManagedCluster reconciler
    """

    config: OperatorConfig
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _api_client: k8s_client.ApiClient | None = field(default=None, repr=False)
    _store: KubeObjectStore | None = field(default=None, repr=False)
    _reconciler: ManagedClusterReconciler | None = field(default=None, repr=False)

    def _ensure_api_client(self) -> k8s_client.ApiClient:
        """Load Kubernetes configuration and create the client (must hold lock)."""
        if self._api_client is None:
            try:
                k8s_config.load_incluster_config()
            except k8s_config.ConfigException:
                k8s_config.load_kube_config()
            self._api_client = k8s_client.ApiClient()
        return self._api_client

    def _ensure_store(self) -> KubeObjectStore:
        """Create the object store (must hold lock)."""
        if self._store is None:
            self._store = KubeObjectStore(
                self._ensure_api_client(),
                cache_ttl=self.config.read_cache_ttl,
                cache_size=self.config.read_cache_size,
                rate_limiter=RateLimiter(self.config.api_qps, self.config.api_burst),
            )
        return self._store

    @property
    def hub_api_server(self) -> str:
        """Hub API URL handed to managed clusters."""
        if self.config.hub_api_server:
            return self.config.hub_api_server
        with self._lock:
            return self._ensure_api_client().configuration.host

    def get_store(self) -> KubeObjectStore:
        """Get or create the object store (thread-safe)."""
        with self._lock:
            return self._ensure_store()

    def get_reconciler(self) -> ManagedClusterReconciler:
        """Get or create the reconciler (thread-safe)."""
        hub_api_server = self.hub_api_server
        with self._lock:
            if self._reconciler is None:
                self._reconciler = ManagedClusterReconciler(
                    self._ensure_store(), self.config, hub_api_server
                )
            return self._reconciler

    def close(self) -> None:
        """Close all connections."""
        with self._lock:
            if self._api_client is not None:
                self._api_client.close()
                self._api_client = None
            self._store = None
            self._reconciler = None
