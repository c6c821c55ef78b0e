"""Manifest rendering for hub-side provisioning and the klusterlet agent.

Every function returns fresh object dicts for one cluster; nothing here
talks to the API server.
"""

from typing import Any

from config import OperatorConfig
from constants import BOOTSTRAP_SA_SUFFIX, BOOTSTRAP_TOKEN_SUFFIX, CLUSTER_LABEL
from models import RenderConfig
from utils import b64encode

KLUSTERLET_CRD_NAME = "klusterlets.operator.open-cluster-management.io"
BOOTSTRAP_KUBECONFIG_SECRET = "bootstrap-hub-kubeconfig"


def render_config(cluster_name: str) -> RenderConfig:
    """Rendering values for a cluster; its namespace shares its name."""
    return RenderConfig(
        cluster_name=cluster_name,
        cluster_namespace=cluster_name,
        bootstrap_service_account_name=cluster_name + BOOTSTRAP_SA_SUFFIX,
    )


def bootstrap_role_name(cluster_name: str) -> str:
    """Name of the hub ClusterRole granted to the bootstrap identity."""
    return f"system:open-cluster-management:managedcluster:bootstrap:{cluster_name}"


def _meta(name: str, render: RenderConfig, namespace: str | None = None) -> dict[str, Any]:
    metadata: dict[str, Any] = {
        "name": name,
        "labels": {CLUSTER_LABEL: render.cluster_name},
    }
    if namespace:
        metadata["namespace"] = namespace
    return metadata


# -----------------------------------------------------------------------------
# Hub side
# -----------------------------------------------------------------------------


def render_bootstrap_service_account(render: RenderConfig) -> dict[str, Any]:
    """The bootstrap identity the agent uses for its first hub contact."""
    return {
        "apiVersion": "v1",
        "kind": "ServiceAccount",
        "metadata": _meta(
            render.bootstrap_service_account_name, render, render.cluster_namespace
        ),
    }


def render_hub_resources(render: RenderConfig) -> list[dict[str, Any]]:
    """Static hub resources other than the bootstrap service account."""
    role_name = bootstrap_role_name(render.cluster_name)
    token_secret = _meta(
        render.cluster_name + BOOTSTRAP_TOKEN_SUFFIX, render, render.cluster_namespace
    )
    token_secret["annotations"] = {
        "kubernetes.io/service-account.name": render.bootstrap_service_account_name
    }
    return [
        {
            "apiVersion": "v1",
            "kind": "Secret",
            "type": "kubernetes.io/service-account-token",
            "metadata": token_secret,
        },
        {
            "apiVersion": "rbac.authorization.k8s.io/v1",
            "kind": "ClusterRole",
            "metadata": _meta(role_name, render),
            "rules": [
                {
                    "apiGroups": ["certificates.k8s.io"],
                    "resources": ["certificatesigningrequests"],
                    "verbs": ["create", "get", "list", "watch"],
                },
                {
                    "apiGroups": ["cluster.open-cluster-management.io"],
                    "resources": ["managedclusters"],
                    "resourceNames": [render.cluster_name],
                    "verbs": ["get", "create"],
                },
            ],
        },
        {
            "apiVersion": "rbac.authorization.k8s.io/v1",
            "kind": "ClusterRoleBinding",
            "metadata": _meta(role_name, render),
            "roleRef": {
                "apiGroup": "rbac.authorization.k8s.io",
                "kind": "ClusterRole",
                "name": role_name,
            },
            "subjects": [
                {
                    "kind": "ServiceAccount",
                    "name": render.bootstrap_service_account_name,
                    "namespace": render.cluster_namespace,
                }
            ],
        },
    ]


# -----------------------------------------------------------------------------
# Managed cluster side
# -----------------------------------------------------------------------------


def render_klusterlet_crds() -> list[dict[str, Any]]:
    """CRDs the agent operator needs on the managed cluster."""
    return [
        {
            "apiVersion": "apiextensions.k8s.io/v1",
            "kind": "CustomResourceDefinition",
            "metadata": {"name": KLUSTERLET_CRD_NAME},
            "spec": {
                "group": "operator.open-cluster-management.io",
                "names": {
                    "kind": "Klusterlet",
                    "listKind": "KlusterletList",
                    "plural": "klusterlets",
                    "singular": "klusterlet",
                },
                "scope": "Cluster",
                "versions": [
                    {
                        "name": "v1",
                        "served": True,
                        "storage": True,
                        "subresources": {"status": {}},
                        "schema": {
                            "openAPIV3Schema": {
                                "type": "object",
                                "x-kubernetes-preserve-unknown-fields": True,
                            }
                        },
                    }
                ],
            },
        }
    ]


def render_klusterlet_manifests(
    render: RenderConfig, config: OperatorConfig, bootstrap_kubeconfig: str
) -> list[dict[str, Any]]:
    """Agent manifests for the managed cluster, in apply order."""
    namespace = config.klusterlet_namespace
    labels = {"app": "klusterlet"}
    return [
        {
            "apiVersion": "v1",
            "kind": "Namespace",
            "metadata": {"name": namespace},
        },
        {
            "apiVersion": "v1",
            "kind": "ServiceAccount",
            "metadata": {"name": "klusterlet", "namespace": namespace},
        },
        {
            "apiVersion": "rbac.authorization.k8s.io/v1",
            "kind": "ClusterRoleBinding",
            "metadata": {"name": "klusterlet"},
            "roleRef": {
                "apiGroup": "rbac.authorization.k8s.io",
                "kind": "ClusterRole",
                "name": "cluster-admin",
            },
            "subjects": [
                {"kind": "ServiceAccount", "name": "klusterlet", "namespace": namespace}
            ],
        },
        {
            "apiVersion": "v1",
            "kind": "Secret",
            "type": "Opaque",
            "metadata": {"name": BOOTSTRAP_KUBECONFIG_SECRET, "namespace": namespace},
            "data": {"kubeconfig": b64encode(bootstrap_kubeconfig)},
        },
        {
            "apiVersion": "apps/v1",
            "kind": "Deployment",
            "metadata": {"name": "klusterlet", "namespace": namespace},
            "spec": {
                "replicas": 1,
                "selector": {"matchLabels": labels},
                "template": {
                    "metadata": {"labels": labels},
                    "spec": {
                        "serviceAccountName": "klusterlet",
                        "containers": [
                            {
                                "name": "klusterlet",
                                "image": config.klusterlet_operator_image,
                                "args": ["/registration-operator", "klusterlet"],
                            }
                        ],
                    },
                },
            },
        },
        {
            "apiVersion": "operator.open-cluster-management.io/v1",
            "kind": "Klusterlet",
            "metadata": {"name": "klusterlet"},
            "spec": {
                "clusterName": render.cluster_name,
                "namespace": namespace,
                "registrationImagePullSpec": config.registration_image,
                "workImagePullSpec": config.work_image,
            },
        },
    ]
