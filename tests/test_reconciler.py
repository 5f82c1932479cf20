"""Test suite for VaultSecretReconciler.

This test suite validates:
- Absent VaultSecret short-circuit
- No-op when the child Secret already exists (idempotency)
- Secret creation with data, annotation and owner reference
- Fetch failure policies (fail-open / fail-closed)
- Error propagation for auth, lookup and create failures
"""
from unittest import mock

import pytest
from kubernetes.client.rest import ApiException

from conftest import FakeKube, FakeVault
from vault_operator.secrets.domains.config_loader import DEFAULTS, FAIL_CLOSED
from vault_operator.secrets.domains.errors import (
    PayloadDecodeError,
    SecretCreateError,
    UnsupportedAuthMethodError,
    VaultAuthError,
    VaultReadError,
)
from vault_operator.secrets.domains.models import NamespacedName
from vault_operator.secrets.domains.vault_client import VaultSecretClient
from vault_operator.secrets.workflows.reconciler import VaultSecretReconciler


class TestReconcileShortCircuits:
    """Paths that must not touch Vault."""

    def test_absent_request_returns_without_requeue(self):
        """Test that a missing VaultSecret is treated as deleted."""
        kube = FakeKube()
        vault = FakeVault(payload={"data": {}})
        reconciler = VaultSecretReconciler(kube, vault)

        result = reconciler.reconcile(NamespacedName("default", "gone"))

        assert result.requeue is False
        assert kube.calls == ["get_vault_secret"]
        assert vault.configs == []

    def test_existing_secret_is_left_alone(self, fake_kube, key):
        """Test that an existing child Secret means no Vault calls and no writes."""
        fake_kube.secrets[key] = object()
        vault = FakeVault(payload={"data": {"password": "hunter2"}})
        reconciler = VaultSecretReconciler(fake_kube, vault)

        result = reconciler.reconcile(key)

        assert result.requeue is False
        assert vault.configs == []
        assert "create_secret" not in fake_kube.calls

    def test_second_reconcile_does_not_fetch_again(self, fake_kube, key):
        """Test that reconciling twice creates one Secret and fetches once."""
        vault = FakeVault(payload={"data": {"password": "hunter2"}})
        reconciler = VaultSecretReconciler(fake_kube, vault)

        first = reconciler.reconcile(key)
        second = reconciler.reconcile(key)

        assert first.requeue is True
        assert second.requeue is False
        assert len(vault.configs) == 1
        assert fake_kube.calls.count("create_secret") == 1
        assert len(fake_kube.secrets) == 1


class TestReconcileCreatesSecret:
    """Test suite for the absent -> materialized transition."""

    def test_secret_created_with_data(self, fake_kube, key):
        """Test that the Vault data ends up as bytes in the Secret."""
        vault = FakeVault(payload={"data": {"user": "alice", "pass": "s3cret"}})
        reconciler = VaultSecretReconciler(fake_kube, vault)

        result = reconciler.reconcile(key)

        assert result.requeue is True
        assert fake_kube.secrets[key].data == {"user": b"alice", "pass": b"s3cret"}

    def test_secret_owned_by_request(self, fake_kube, key, vault_secret_request):
        """Test that the Secret carries a controller reference to the VaultSecret."""
        reconciler = VaultSecretReconciler(fake_kube, FakeVault(payload={"data": {}}))

        reconciler.reconcile(key)

        refs = fake_kube.secrets[key].owner_references
        assert len(refs) == 1
        assert refs[0].uid == vault_secret_request.uid
        assert refs[0].name == "test"
        assert refs[0].kind == "VaultSecret"
        assert refs[0].controller is True

    def test_secret_annotated_with_kind(self, fake_kube, key):
        """Test that the Secret is annotated apiVersion -> kind."""
        reconciler = VaultSecretReconciler(fake_kube, FakeVault(payload={"data": {}}))

        reconciler.reconcile(key)

        assert fake_kube.secrets[key].annotations == {"apps.vault.op/v1": "VaultSecret"}

    def test_vault_config_derived_from_request(self, fake_kube, key):
        """Test that the fetch uses the request's address, path, role and mount."""
        vault = FakeVault(payload={"data": {}})
        reconciler = VaultSecretReconciler(fake_kube, vault, skip_verify=True)

        reconciler.reconcile(key)

        config = vault.configs[0]
        assert config.address == "http://vault:8200"
        assert config.path == "secret/test"
        assert config.role == "vault-op"
        assert config.auth_path == "kubernetes"
        assert config.auth_method == "jwt"
        assert config.skip_verify is True


class TestFetchFailurePolicy:
    """Test suite for read failures after a successful login."""

    def test_fail_open_creates_empty_secret(self, fake_kube, key):
        """Test that fail-open logs the read error and creates an empty Secret."""
        vault = FakeVault(error=VaultReadError("permission denied"))
        reconciler = VaultSecretReconciler(fake_kube, vault)

        result = reconciler.reconcile(key)

        assert result.requeue is True
        assert fake_kube.secrets[key].data == {}

    def test_fail_closed_raises_and_creates_nothing(self, fake_kube, key):
        """Test that fail-closed surfaces the read error."""
        vault = FakeVault(error=VaultReadError("permission denied"))
        reconciler = VaultSecretReconciler(fake_kube, vault, fetch_failure_policy=FAIL_CLOSED)

        with pytest.raises(VaultReadError):
            reconciler.reconcile(key)

        assert fake_kube.secrets == {}

    @pytest.mark.parametrize("error", [
        VaultAuthError("login failed"),
        UnsupportedAuthMethodError("Unsupported auth method: approle"),
    ])
    def test_auth_errors_always_surface(self, fake_kube, key, error):
        """Test that auth failures are raised even under fail-open."""
        reconciler = VaultSecretReconciler(fake_kube, FakeVault(error=error))

        with pytest.raises(VaultAuthError):
            reconciler.reconcile(key)

        assert "create_secret" not in fake_kube.calls

    def test_malformed_payload_surfaces(self, fake_kube, key):
        """Test that a payload without 'data' is a decode error."""
        reconciler = VaultSecretReconciler(fake_kube, FakeVault(payload={"metadata": {}}))

        with pytest.raises(PayloadDecodeError):
            reconciler.reconcile(key)

        assert fake_kube.secrets == {}

    def test_unknown_policy_rejected(self, fake_kube):
        """Test that an unknown policy is rejected at construction."""
        with pytest.raises(ValueError):
            VaultSecretReconciler(fake_kube, FakeVault(), fetch_failure_policy="maybe")


class TestKubernetesErrors:
    """Test suite for Kubernetes API failures."""

    def test_secret_lookup_error_surfaces(self, fake_kube, key):
        """Test that non-404 lookup errors are raised and Vault is not called."""
        fake_kube.get_secret_error = ApiException(status=403, reason="Forbidden")
        vault = FakeVault(payload={"data": {}})
        reconciler = VaultSecretReconciler(fake_kube, vault)

        with pytest.raises(ApiException):
            reconciler.reconcile(key)

        assert vault.configs == []

    def test_create_error_surfaces(self, fake_kube, key):
        """Test that a failed create is raised rather than requeued."""
        fake_kube.create_error = SecretCreateError("conflict")
        reconciler = VaultSecretReconciler(fake_kube, FakeVault(payload={"data": {"a": "b"}}))

        with pytest.raises(SecretCreateError):
            reconciler.reconcile(key)


class TestEndToEnd:
    """Reconciler wired to the real VaultSecretClient with a mocked hvac connection."""

    def test_full_flow(self, fake_kube, key, token_file):
        """Test login, authenticated read and Secret creation in one pass."""
        connection = mock.MagicMock()
        connection.auth.kubernetes.login.return_value = {"auth": {"client_token": "sess-456"}}
        tokens_at_read = []

        def read(path):
            tokens_at_read.append(connection.token)
            return {"request_id": "r-1", "data": {"data": {"password": "hunter2"}, "metadata": {"version": 1}}}

        connection.read.side_effect = read
        factory = mock.Mock(return_value=connection)
        reconciler = VaultSecretReconciler(
            fake_kube, VaultSecretClient(connection_factory=factory)
        )

        result = reconciler.reconcile(key)

        assert result.requeue is True
        factory.assert_called_once_with(url="http://vault:8200", verify=True)
        connection.auth.kubernetes.login.assert_called_once_with(
            role="vault-op", jwt="tok-123", use_token=False, mount_point="kubernetes"
        )
        connection.read.assert_called_once_with("secret/test")
        assert tokens_at_read == ["sess-456"]

        secret = fake_kube.secrets[key]
        assert secret.data == {"password": b"hunter2"}
        assert secret.owner_references[0].uid == "0b7c1f0e-8a55-4b4e-9d7e-111111111111"


class TestFromConfig:
    """Test suite for building a reconciler from loaded config."""

    def test_from_config_uses_settings(self, fake_kube):
        """Test that policy, auth method and TLS settings come from config."""
        config = {
            "vault": {"auth_method": "jwt", "skip_verify": True},
            "reconcile": dict(DEFAULTS["reconcile"], fetch_failure_policy=FAIL_CLOSED),
            "resource": dict(DEFAULTS["resource"]),
        }
        reconciler = VaultSecretReconciler.from_config(config, kube=fake_kube, vault=FakeVault())

        assert reconciler.fetch_failure_policy == FAIL_CLOSED
        assert reconciler.skip_verify is True
        assert reconciler.kube is fake_kube

    def test_from_config_builds_kube_client_for_resource(self):
        """Test that the resource group/version/plural reach the KubeClient."""
        config = {
            "vault": dict(DEFAULTS["vault"]),
            "reconcile": dict(DEFAULTS["reconcile"]),
            "resource": {"group": "example.io", "version": "v1beta1", "plural": "vsecrets"},
        }
        reconciler = VaultSecretReconciler.from_config(config, vault=FakeVault())

        assert reconciler.kube.group == "example.io"
        assert reconciler.kube.version == "v1beta1"
        assert reconciler.kube.plural == "vsecrets"
