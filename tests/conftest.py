"""Shared fixtures and fake collaborators."""
from typing import Dict, List, Optional

import pytest

from vault_operator.secrets.domains.models import (
    MaterializedSecret,
    NamespacedName,
    VaultConfig,
    VaultSecretRequest,
)


class FakeKube:
    """In-memory stand-in for KubeClient."""

    def __init__(self):
        self.requests: Dict[NamespacedName, VaultSecretRequest] = {}
        self.secrets: Dict[NamespacedName, MaterializedSecret] = {}
        self.get_secret_error: Optional[Exception] = None
        self.create_error: Optional[Exception] = None
        self.calls: List[str] = []

    def get_vault_secret(self, key):
        self.calls.append("get_vault_secret")
        return self.requests.get(key)

    def get_secret(self, key):
        self.calls.append("get_secret")
        if self.get_secret_error:
            raise self.get_secret_error
        return self.secrets.get(key)

    def create_secret(self, secret):
        self.calls.append("create_secret")
        if self.create_error:
            raise self.create_error
        self.secrets[NamespacedName(secret.namespace, secret.name)] = secret
        return secret


class FakeVault:
    """Stand-in for VaultSecretClient returning a canned payload or error."""

    def __init__(self, payload=None, error: Optional[Exception] = None):
        self.payload = payload
        self.error = error
        self.configs: List[VaultConfig] = []

    def fetch_secret(self, config):
        self.configs.append(config)
        if self.error:
            raise self.error
        return self.payload


@pytest.fixture
def vault_secret_request():
    """A VaultSecret as parsed from the API server."""
    return VaultSecretRequest(
        name="test",
        namespace="default",
        uid="0b7c1f0e-8a55-4b4e-9d7e-111111111111",
        api_version="apps.vault.op/v1",
        kind="VaultSecret",
        vault_address="http://vault:8200",
        path="secret/test",
        role="vault-op",
        auth_path="kubernetes",
    )


@pytest.fixture
def vault_secret_resource():
    """The raw custom object behind vault_secret_request."""
    return {
        "apiVersion": "apps.vault.op/v1",
        "kind": "VaultSecret",
        "metadata": {
            "name": "test",
            "namespace": "default",
            "uid": "0b7c1f0e-8a55-4b4e-9d7e-111111111111",
        },
        "spec": {
            "vaultAddress": "http://vault:8200",
            "path": "secret/test",
            "role": "vault-op",
            "authPath": "kubernetes",
        },
    }


@pytest.fixture
def key():
    return NamespacedName(namespace="default", name="test")


@pytest.fixture
def fake_kube(vault_secret_request, key):
    kube = FakeKube()
    kube.requests[key] = vault_secret_request
    return kube


@pytest.fixture
def token_file(tmp_path, monkeypatch):
    """Service account token file picked up through the primary env var."""
    path = tmp_path / "token"
    path.write_bytes(b"tok-123")
    monkeypatch.setenv("KUBERNETES_SERVICE_ACCOUNT_TOKEN", str(path))
    monkeypatch.delenv("VAULT_JWT_FILE", raising=False)
    return path
