"""Tests for the offline import decision."""

import pytest
from kubernetes.client import ApiException

from constants import SELF_MANAGED_LABEL
from decision import ImportDecisionEngine, self_managed_override
from fakes import (
    FakeObjectStore,
    make_auto_import_secret,
    make_cluster,
    make_cluster_deployment,
)
from models import (
    AutoImportCandidate,
    ExternallyProvisioned,
    MalformedEvidenceError,
    NoImport,
    SelfManaged,
)


class TestSelfManagedOverride:
    """Tests for self_managed_override function."""

    def test_no_label(self):
        assert self_managed_override(make_cluster()) is None

    def test_true(self):
        cluster = make_cluster(labels={SELF_MANAGED_LABEL: "true"})
        assert self_managed_override(cluster) == SelfManaged(import_cluster=True)

    def test_false(self):
        cluster = make_cluster(labels={SELF_MANAGED_LABEL: "F"})
        assert self_managed_override(cluster) == SelfManaged(import_cluster=False)

    def test_malformed(self):
        cluster = make_cluster(labels={SELF_MANAGED_LABEL: "yes"})
        with pytest.raises(MalformedEvidenceError, match="local-cluster"):
            self_managed_override(cluster)


class TestImportDecisionEngine:
    """Tests for ImportDecisionEngine class."""

    def test_self_managed_label_decides_without_lookups(self):
        store = FakeObjectStore([make_cluster_deployment(), make_auto_import_secret()])
        cluster = make_cluster(labels={SELF_MANAGED_LABEL: "true"})

        decision = ImportDecisionEngine(store).decide(cluster)

        assert decision == SelfManaged(import_cluster=True)
        assert store.calls == []

    def test_self_managed_false_means_no_import(self):
        store = FakeObjectStore([make_cluster_deployment()])
        cluster = make_cluster(labels={SELF_MANAGED_LABEL: "false"})

        decision = ImportDecisionEngine(store).decide(cluster)

        assert decision.should_import is False
        assert store.calls == []

    def test_cluster_deployment_wins_over_auto_import_secret(self):
        store = FakeObjectStore([make_cluster_deployment(), make_auto_import_secret()])

        decision = ImportDecisionEngine(store).decide(make_cluster())

        assert isinstance(decision, ExternallyProvisioned)
        assert decision.cluster_deployment["metadata"]["name"] == "cluster1"
        assert ("get", "Secret", "auto-import-secret", "cluster1") not in store.calls

    def test_auto_import_secret(self):
        store = FakeObjectStore([make_auto_import_secret()])

        decision = ImportDecisionEngine(store).decide(make_cluster())

        assert isinstance(decision, AutoImportCandidate)
        assert decision.secret["metadata"]["name"] == "auto-import-secret"

    def test_no_evidence(self):
        store = FakeObjectStore()

        decision = ImportDecisionEngine(store).decide(make_cluster())

        assert decision == NoImport()
        assert store.mutations == []

    def test_malformed_label_propagates(self):
        cluster = make_cluster(labels={SELF_MANAGED_LABEL: "maybe"})
        with pytest.raises(MalformedEvidenceError):
            ImportDecisionEngine(FakeObjectStore()).decide(cluster)

    def test_cluster_deployment_lookup_error_propagates(self):
        store = FakeObjectStore([make_auto_import_secret()])
        store.errors[("get", "ClusterDeployment", "cluster1")] = ApiException(status=500)

        with pytest.raises(ApiException):
            ImportDecisionEngine(store).decide(make_cluster())

        assert ("get", "Secret", "auto-import-secret", "cluster1") not in store.calls
