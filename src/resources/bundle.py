"""Import artifact bundle generation and the per-cluster import secret."""

import logging
from typing import Any

import yaml

from config import OperatorConfig
from constants import BOOTSTRAP_TOKEN_SUFFIX, CLUSTER_LABEL, IMPORT_SECRET_SUFFIX, SECRET
from models import BootstrapTokenPendingError, ImportBundle
from resources.apply import apply_object
from resources.manifests import (
    render_config,
    render_klusterlet_crds,
    render_klusterlet_manifests,
)
from store import ObjectStore
from utils import b64encode, name_of, owner_reference, secret_value

logger = logging.getLogger(__name__)

CRDS_KEY = "crds.yaml"
IMPORT_KEY = "import.yaml"


def dump_yaml(objects: list[dict[str, Any]]) -> str:
    """Serialize objects as a deterministic multi-document YAML stream."""
    return yaml.safe_dump_all(objects, sort_keys=True, default_flow_style=False)


def build_bootstrap_kubeconfig(
    server: str, token: str, ca_data: str | None, cluster_name: str
) -> str:
    """Build the kubeconfig the agent uses to register with the hub.

    Args:
        server: Hub API server URL
        token: Bootstrap service account token
        ca_data: Base64 encoded hub CA bundle, if known
        cluster_name: Managed cluster name, used for the user entry
    """
    cluster: dict[str, Any] = {"server": server}
    if ca_data:
        cluster["certificate-authority-data"] = ca_data
    else:
        cluster["insecure-skip-tls-verify"] = True
    kubeconfig = {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [{"name": "hub", "cluster": cluster}],
        "users": [{"name": f"bootstrap-{cluster_name}", "user": {"token": token}}],
        "contexts": [
            {
                "name": "bootstrap",
                "context": {"cluster": "hub", "user": f"bootstrap-{cluster_name}"},
            }
        ],
        "current-context": "bootstrap",
    }
    return yaml.safe_dump(kubeconfig, sort_keys=True, default_flow_style=False)


def generate_import_bundle(
    store: ObjectStore,
    cluster: dict[str, Any],
    config: OperatorConfig,
    hub_api_server: str,
) -> ImportBundle:
    """Generate the CRDs and agent manifests that bootstrap a cluster.

    The output depends only on the cluster name, the configuration and the
    bootstrap token, so repeated calls produce identical bundles.

    Raises:
        BootstrapTokenPendingError: The token secret is missing or not yet
            filled in by the token controller
    """
    render = render_config(name_of(cluster))
    token_name = render.cluster_name + BOOTSTRAP_TOKEN_SUFFIX

    token_secret = store.get(SECRET, token_name, render.cluster_namespace)
    token = secret_value(token_secret, "token") if token_secret else None
    if not token:
        raise BootstrapTokenPendingError(
            f"bootstrap token {render.cluster_namespace}/{token_name} is not ready"
        )
    ca_data = (token_secret.get("data") or {}).get("ca.crt")

    kubeconfig = build_bootstrap_kubeconfig(
        hub_api_server, token, ca_data, render.cluster_name
    )
    return ImportBundle(
        crds=render_klusterlet_crds(),
        manifests=render_klusterlet_manifests(render, config, kubeconfig),
    )


def render_import_secret(cluster: dict[str, Any], bundle: ImportBundle) -> dict[str, Any]:
    name = name_of(cluster)
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "type": "Opaque",
        "metadata": {
            "name": name + IMPORT_SECRET_SUFFIX,
            "namespace": name,
            "labels": {CLUSTER_LABEL: name},
            "ownerReferences": [owner_reference(cluster)],
        },
        "data": {
            CRDS_KEY: b64encode(dump_yaml(bundle.crds)),
            IMPORT_KEY: b64encode(dump_yaml(bundle.manifests)),
        },
    }


def upsert_import_secret(
    store: ObjectStore, cluster: dict[str, Any], bundle: ImportBundle
) -> bool:
    """Store the bundle in the cluster's import secret, overwriting it whole."""
    return apply_object(store, render_import_secret(cluster, bundle))
