"""Pytest configuration and fixtures."""

import pytest

from config import OperatorConfig
from fakes import FakeObjectStore, RemoteStores, make_namespace, make_token_secret
from reconciler import ManagedClusterReconciler

HUB_API_SERVER = "https://hub.example.com:6443"


@pytest.fixture
def config():
    return OperatorConfig()


@pytest.fixture
def store():
    """Store holding the namespace and bootstrap token of cluster1."""
    return FakeObjectStore([make_namespace(), make_token_secret()])


@pytest.fixture
def remote():
    return RemoteStores()


@pytest.fixture
def reconciler(store, config, remote):
    return ManagedClusterReconciler(store, config, HUB_API_SERVER, remote)
