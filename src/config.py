"""Operator configuration loaded from environment variables."""

import os
from dataclasses import dataclass

from constants import KOPF_FINALIZER

DEFAULT_KLUSTERLET_OPERATOR_IMAGE = "quay.io/open-cluster-management/registration-operator:latest"
DEFAULT_REGISTRATION_IMAGE = "quay.io/open-cluster-management/registration:latest"
DEFAULT_WORK_IMAGE = "quay.io/open-cluster-management/work:latest"


@dataclass(frozen=True)
class OperatorConfig:
    """Runtime settings for the operator.

    Configuration via environment variables:
        METRICS_PORT: Prometheus exporter port (default: 9090)
        READ_CACHE_TTL_SECONDS: Lifetime of cached reads, 0 disables (default: 5)
        READ_CACHE_SIZE: Maximum number of cached objects (default: 1024)
        KUBE_API_QPS: Sustained Kubernetes API requests per second (default: 20)
        KUBE_API_BURST: Requests allowed above the sustained rate (default: 30)
        RESYNC_INTERVAL_SECONDS: Periodic reconcile interval (default: 300)
        IMPORT_RECHECK_SECONDS: Delay before checking an unfinished
            ClusterDeployment install again (default: 30)
        HUB_API_SERVER: Hub API URL written into the bootstrap kubeconfig
            (default: the URL the operator itself talks to)
        KLUSTERLET_NAMESPACE: Agent namespace on the managed cluster
        KLUSTERLET_OPERATOR_IMAGE, REGISTRATION_IMAGE, WORK_IMAGE: agent images
    """

    metrics_port: int = 9090
    read_cache_ttl: float = 5.0
    read_cache_size: int = 1024
    api_qps: float = 20.0
    api_burst: int = 30
    resync_interval: float = 300.0
    import_recheck_delay: float = 30.0
    hub_api_server: str = ""
    klusterlet_namespace: str = "open-cluster-management-agent"
    klusterlet_operator_image: str = DEFAULT_KLUSTERLET_OPERATOR_IMAGE
    registration_image: str = DEFAULT_REGISTRATION_IMAGE
    work_image: str = DEFAULT_WORK_IMAGE
    # Finalizer kopf adds to objects that have timers
    kopf_finalizer: str = KOPF_FINALIZER

    @classmethod
    def from_env(cls) -> "OperatorConfig":
        """Build the configuration from the process environment."""
        env = os.environ
        return cls(
            metrics_port=int(env.get("METRICS_PORT", "9090")),
            read_cache_ttl=float(env.get("READ_CACHE_TTL_SECONDS", "5")),
            read_cache_size=int(env.get("READ_CACHE_SIZE", "1024")),
            api_qps=float(env.get("KUBE_API_QPS", "20")),
            api_burst=int(env.get("KUBE_API_BURST", "30")),
            resync_interval=float(env.get("RESYNC_INTERVAL_SECONDS", "300")),
            import_recheck_delay=float(env.get("IMPORT_RECHECK_SECONDS", "30")),
            hub_api_server=env.get("HUB_API_SERVER", ""),
            klusterlet_namespace=env.get(
                "KLUSTERLET_NAMESPACE", "open-cluster-management-agent"
            ),
            klusterlet_operator_image=env.get(
                "KLUSTERLET_OPERATOR_IMAGE", DEFAULT_KLUSTERLET_OPERATOR_IMAGE
            ),
            registration_image=env.get("REGISTRATION_IMAGE", DEFAULT_REGISTRATION_IMAGE),
            work_image=env.get("WORK_IMAGE", DEFAULT_WORK_IMAGE),
        )
