"""Kubernetes API access for VaultSecret resources and their child Secrets."""
import base64
import logging
from typing import Optional

from kubernetes import client
from kubernetes.client.rest import ApiException

from .errors import SecretCreateError
from .models import MaterializedSecret, NamespacedName, VaultSecretRequest

logger = logging.getLogger(__name__)

DEFAULT_GROUP = "apps.vault.op"
DEFAULT_VERSION = "v1"
DEFAULT_PLURAL = "vaultsecrets"


def to_v1_secret(secret: MaterializedSecret) -> client.V1Secret:
    """Convert a MaterializedSecret into the API model, base64-encoding values."""
    return client.V1Secret(
        api_version="v1",
        kind="Secret",
        type="Opaque",
        metadata=client.V1ObjectMeta(
            name=secret.name,
            namespace=secret.namespace,
            annotations=dict(secret.annotations),
            owner_references=[
                client.V1OwnerReference(
                    api_version=ref.api_version,
                    kind=ref.kind,
                    name=ref.name,
                    uid=ref.uid,
                    controller=ref.controller,
                    block_owner_deletion=ref.block_owner_deletion,
                )
                for ref in secret.owner_references
            ],
        ),
        data={k: base64.b64encode(v).decode("ascii") for k, v in secret.data.items()},
    )


class KubeClient:
    """Thin wrapper over the CoreV1 and CustomObjects APIs."""

    def __init__(
        self,
        core_api: Optional[client.CoreV1Api] = None,
        custom_api: Optional[client.CustomObjectsApi] = None,
        group: str = DEFAULT_GROUP,
        version: str = DEFAULT_VERSION,
        plural: str = DEFAULT_PLURAL,
    ):
        self._core_api = core_api
        self._custom_api = custom_api
        self.group = group
        self.version = version
        self.plural = plural

    @property
    def core_api(self) -> client.CoreV1Api:
        """Lazy-initialize CoreV1 client."""
        if self._core_api is None:
            self._core_api = client.CoreV1Api()
        return self._core_api

    @property
    def custom_api(self) -> client.CustomObjectsApi:
        """Lazy-initialize CustomObjects client."""
        if self._custom_api is None:
            self._custom_api = client.CustomObjectsApi()
        return self._custom_api

    def get_vault_secret(self, key: NamespacedName) -> Optional[VaultSecretRequest]:
        """
        Fetch a VaultSecret resource.

        Returns:
            The parsed request, or None if it does not exist

        Raises:
            ApiException: For any API error other than 404
            InvalidRequestError: If the resource lacks required fields
        """
        try:
            obj = self.custom_api.get_namespaced_custom_object(
                self.group, self.version, key.namespace, self.plural, key.name
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise
        return VaultSecretRequest.from_resource(obj)

    def get_secret(self, key: NamespacedName) -> Optional[client.V1Secret]:
        """
        Fetch a Secret.

        Returns:
            The Secret, or None if it does not exist

        Raises:
            ApiException: For any API error other than 404
        """
        try:
            return self.core_api.read_namespaced_secret(key.name, key.namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise

    def create_secret(self, secret: MaterializedSecret) -> client.V1Secret:
        """
        Create a Secret.

        Raises:
            SecretCreateError: If the API rejects the create call
        """
        try:
            created = self.core_api.create_namespaced_secret(secret.namespace, to_v1_secret(secret))
        except ApiException as e:
            raise SecretCreateError(
                f"Failed to create Secret {secret.namespace}/{secret.name}: {e.status} {e.reason}"
            ) from e
        logger.info(f"Created Secret {secret.name} in namespace {secret.namespace}")
        return created
