"""Kubernetes object access for the reconciler.

Objects are exchanged as plain JSON dicts. Absence is not an error here:
`get` returns None and `delete` returns False for objects (or whole kinds)
the API server does not have. Every other API failure propagates as
`kubernetes.client.ApiException`.
"""

import copy
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from cachetools import TTLCache
from kubernetes.client import ApiClient, ApiException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import NotFoundError, ResourceNotFoundError
from kubernetes.dynamic.resource import Resource

from constants import SECRET
from metrics import KUBE_API_CALLS, KUBE_API_DURATION, READ_CACHE_REQUESTS
from models import Kind
from ratelimit import RateLimiter

logger = logging.getLogger(__name__)

# Credential material must always be read from the API server
UNCACHED_KINDS = frozenset({SECRET})

MERGE_PATCH = "application/merge-patch+json"


class ObjectStore(ABC):
    """Get/create/update/patch/delete against named resources."""

    @abstractmethod
    def get(
        self, kind: Kind, name: str, namespace: str | None = None
    ) -> dict[str, Any] | None:
        """Read an object, or None if it does not exist."""

    @abstractmethod
    def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Create an object and return it as stored."""

    @abstractmethod
    def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Replace an object. Conflicts if its resourceVersion is stale."""

    @abstractmethod
    def patch_status(
        self, kind: Kind, name: str, patch: dict[str, Any], namespace: str | None = None
    ) -> dict[str, Any]:
        """Merge-patch the status subresource of an object."""

    @abstractmethod
    def delete(self, kind: Kind, name: str, namespace: str | None = None) -> bool:
        """Delete an object. Returns False if it was already gone."""


class KubeObjectStore(ObjectStore):
    """ObjectStore backed by the Kubernetes dynamic client.

    Reads of kinds in UNCACHED_KINDS go straight to the API server; all
    other reads are served from a short-lived cache that writes invalidate.
    """

    def __init__(
        self,
        api_client: ApiClient,
        cache_ttl: float = 5.0,
        cache_size: int = 1024,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            api_client: Configured Kubernetes API client
            cache_ttl: Seconds a cached read stays valid. 0 disables caching.
            cache_size: Maximum number of cached objects
            rate_limiter: Optional client-side limiter for every API call
        """
        self._api_client = api_client
        self._dynamic: DynamicClient | None = None
        self._rate_limiter = rate_limiter
        self._cache: TTLCache | None = (
            TTLCache(maxsize=cache_size, ttl=cache_ttl) if cache_ttl > 0 else None
        )
        self._cache_lock = threading.Lock()

    @property
    def dynamic(self) -> DynamicClient:
        """Get or create the dynamic client (runs API discovery)."""
        if self._dynamic is None:
            self._dynamic = DynamicClient(self._api_client)
        return self._dynamic

    def _resource(self, kind: Kind) -> Resource | None:
        try:
            return self.dynamic.resources.get(
                api_version=kind.api_version, kind=kind.kind
            )
        except ResourceNotFoundError:
            logger.debug("Kind %s is not served by the API server", kind)
            return None

    @contextmanager
    def _call(self, kind: Kind, verb: str) -> Iterator[None]:
        """Rate limit and record metrics for one API call."""
        if self._rate_limiter is not None:
            with self._rate_limiter.acquire():
                pass
        start = time.monotonic()
        try:
            yield
        except NotFoundError:
            KUBE_API_CALLS.labels(kind=kind.kind, verb=verb, status="not_found").inc()
            raise
        except ApiException:
            KUBE_API_CALLS.labels(kind=kind.kind, verb=verb, status="error").inc()
            raise
        else:
            KUBE_API_CALLS.labels(kind=kind.kind, verb=verb, status="success").inc()
        finally:
            KUBE_API_DURATION.labels(kind=kind.kind, verb=verb).observe(
                time.monotonic() - start
            )

    def _cache_key(self, kind: Kind, name: str, namespace: str | None) -> tuple:
        return (kind, namespace or "", name)

    def _invalidate(self, kind: Kind, name: str, namespace: str | None) -> None:
        if self._cache is None:
            return
        with self._cache_lock:
            self._cache.pop(self._cache_key(kind, name, namespace), None)

    def _read(
        self, kind: Kind, name: str, namespace: str | None
    ) -> dict[str, Any] | None:
        resource = self._resource(kind)
        if resource is None:
            return None
        try:
            with self._call(kind, "get"):
                return resource.get(name=name, namespace=namespace).to_dict()
        except NotFoundError:
            return None

    def get(
        self, kind: Kind, name: str, namespace: str | None = None
    ) -> dict[str, Any] | None:
        if kind in UNCACHED_KINDS or self._cache is None:
            READ_CACHE_REQUESTS.labels(result="bypass").inc()
            return self._read(kind, name, namespace)

        key = self._cache_key(kind, name, namespace)
        with self._cache_lock:
            cached = self._cache.get(key)
        if cached is not None:
            READ_CACHE_REQUESTS.labels(result="hit").inc()
            return copy.deepcopy(cached)

        READ_CACHE_REQUESTS.labels(result="miss").inc()
        obj = self._read(kind, name, namespace)
        if obj is not None:
            with self._cache_lock:
                self._cache[key] = copy.deepcopy(obj)
        return obj

    def _require_resource(self, kind: Kind) -> Resource:
        # Discovery is refreshed once in case the kind appeared since startup
        resource = self._resource(kind)
        if resource is None:
            self.dynamic.resources.invalidate_cache()
            return self.dynamic.resources.get(
                api_version=kind.api_version, kind=kind.kind
            )
        return resource

    def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        kind = Kind.of(obj)
        metadata = obj["metadata"]
        resource = self._require_resource(kind)
        with self._call(kind, "create"):
            created = resource.create(body=obj, namespace=metadata.get("namespace"))
        self._invalidate(kind, metadata["name"], metadata.get("namespace"))
        return created.to_dict()

    def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        kind = Kind.of(obj)
        metadata = obj["metadata"]
        resource = self._require_resource(kind)
        try:
            with self._call(kind, "update"):
                updated = resource.replace(body=obj, namespace=metadata.get("namespace"))
        finally:
            self._invalidate(kind, metadata["name"], metadata.get("namespace"))
        return updated.to_dict()

    def patch_status(
        self, kind: Kind, name: str, patch: dict[str, Any], namespace: str | None = None
    ) -> dict[str, Any]:
        resource = self._require_resource(kind)
        try:
            with self._call(kind, "patch_status"):
                patched = resource.status.patch(
                    body=patch,
                    name=name,
                    namespace=namespace,
                    content_type=MERGE_PATCH,
                )
        finally:
            self._invalidate(kind, name, namespace)
        return patched.to_dict()

    def delete(self, kind: Kind, name: str, namespace: str | None = None) -> bool:
        resource = self._resource(kind)
        if resource is None:
            return False
        try:
            with self._call(kind, "delete"):
                resource.delete(name=name, namespace=namespace)
        except NotFoundError:
            return False
        finally:
            self._invalidate(kind, name, namespace)
        return True
