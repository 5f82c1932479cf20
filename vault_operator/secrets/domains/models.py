"""Domain models for secret materialization."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import InvalidRequestError

DEFAULT_AUTH_PATH = "kubernetes"
JWT_AUTH_METHOD = "jwt"


@dataclass(frozen=True)
class NamespacedName:
    """Namespace-qualified key shared by a VaultSecret and its child Secret."""
    namespace: str
    name: str

    @classmethod
    def parse(cls, key: str) -> "NamespacedName":
        """Parse a 'namespace/name' key."""
        namespace, sep, name = key.partition("/")
        if not sep or not namespace or not name or "/" in name:
            raise ValueError(f"Expected key in the form 'namespace/name', got '{key}'")
        return cls(namespace=namespace, name=name)

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass
class VaultConfig:
    """Everything needed to fetch one secret from Vault."""
    address: str
    path: str
    role: str
    auth_path: str = DEFAULT_AUTH_PATH
    auth_method: str = JWT_AUTH_METHOD
    skip_verify: bool = False


@dataclass
class VaultSecretRequest:
    """A VaultSecret custom resource, read-only to the operator."""
    name: str
    namespace: str
    uid: str
    api_version: str
    kind: str
    vault_address: str
    path: str
    role: str
    auth_path: str = DEFAULT_AUTH_PATH
    auth_method: Optional[str] = None

    @property
    def key(self) -> NamespacedName:
        return NamespacedName(namespace=self.namespace, name=self.name)

    @classmethod
    def from_resource(cls, obj: Dict[str, Any]) -> "VaultSecretRequest":
        """
        Build a request from a custom object as returned by the API server.

        Args:
            obj: Custom object dict (apiVersion, kind, metadata, spec)

        Returns:
            Parsed VaultSecretRequest

        Raises:
            InvalidRequestError: If metadata or a required spec field is missing
        """
        metadata = obj.get("metadata") or {}
        spec = obj.get("spec") or {}
        name = metadata.get("name", "<unknown>")

        missing = [
            f for f in ("apiVersion", "kind") if not obj.get(f)
        ] + [
            f"metadata.{f}" for f in ("name", "namespace", "uid") if not metadata.get(f)
        ] + [
            f"spec.{f}" for f in ("vaultAddress", "path", "role") if not spec.get(f)
        ]
        if missing:
            raise InvalidRequestError(
                f"VaultSecret '{name}' is missing required fields: {', '.join(missing)}"
            )

        return cls(
            name=metadata["name"],
            namespace=metadata["namespace"],
            uid=metadata["uid"],
            api_version=obj["apiVersion"],
            kind=obj["kind"],
            vault_address=spec["vaultAddress"],
            path=spec["path"],
            role=spec["role"],
            # An empty authPath falls back to the default mount
            auth_path=spec.get("authPath") or DEFAULT_AUTH_PATH,
            auth_method=spec.get("authMethod") or None,
        )

    def vault_config(self, auth_method: str = JWT_AUTH_METHOD, skip_verify: bool = False) -> VaultConfig:
        """Derive the Vault fetch config, letting the resource override the auth method."""
        return VaultConfig(
            address=self.vault_address,
            path=self.path,
            role=self.role,
            auth_path=self.auth_path,
            auth_method=self.auth_method or auth_method,
            skip_verify=skip_verify,
        )


@dataclass
class OwnerReference:
    """Controller reference from a child Secret back to its VaultSecret."""
    api_version: str
    kind: str
    name: str
    uid: str
    controller: bool = True
    block_owner_deletion: bool = True


@dataclass
class MaterializedSecret:
    """A Kubernetes Secret built from Vault data, before it is created."""
    name: str
    namespace: str
    data: Dict[str, bytes] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    owner_references: List[OwnerReference] = field(default_factory=list)


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation; errors are raised instead."""
    requeue: bool = False
