"""Reconcile VaultSecret resources into child Secrets."""
import logging
from typing import Any, Dict, Optional

from ..domains.config_loader import FAIL_CLOSED, FAIL_OPEN, FETCH_FAILURE_POLICIES
from ..domains.errors import VaultReadError
from ..domains.kube_client import KubeClient
from ..domains.models import JWT_AUTH_METHOD, NamespacedName, ReconcileResult
from ..domains.secret_builder import build_secret
from ..domains.vault_client import VaultSecretClient

logger = logging.getLogger(__name__)


class VaultSecretReconciler:
    """
    Drive one VaultSecret towards having its child Secret.

    The only transition is absent -> materialized. An existing Secret is
    never refreshed or compared against Vault.
    """

    def __init__(
        self,
        kube: KubeClient,
        vault: VaultSecretClient,
        fetch_failure_policy: str = FAIL_OPEN,
        auth_method: str = JWT_AUTH_METHOD,
        skip_verify: bool = False,
    ):
        if fetch_failure_policy not in FETCH_FAILURE_POLICIES:
            raise ValueError(f"Unknown fetch failure policy: {fetch_failure_policy}")
        self.kube = kube
        self.vault = vault
        self.fetch_failure_policy = fetch_failure_policy
        self.auth_method = auth_method
        self.skip_verify = skip_verify

    @classmethod
    def from_config(cls, config: Dict[str, Any], kube: Optional[KubeClient] = None,
                    vault: Optional[VaultSecretClient] = None) -> "VaultSecretReconciler":
        """Build a reconciler from a loaded operator config."""
        resource = config["resource"]
        return cls(
            kube=kube or KubeClient(
                group=resource["group"],
                version=resource["version"],
                plural=resource["plural"],
            ),
            vault=vault or VaultSecretClient(),
            fetch_failure_policy=config["reconcile"]["fetch_failure_policy"],
            auth_method=config["vault"]["auth_method"],
            skip_verify=config["vault"]["skip_verify"],
        )

    def reconcile(self, key: NamespacedName) -> ReconcileResult:
        """
        Make sure the child Secret for key exists.

        Args:
            key: Namespace and name of the VaultSecret

        Returns:
            ReconcileResult with requeue=True after a Secret was created,
            requeue=False when there was nothing to do

        Raises:
            VaultAuthError: If authenticating to Vault fails
            VaultReadError: If the read fails under the fail-closed policy
            PayloadDecodeError: If the Vault payload has the wrong shape
            SecretCreateError: If the Secret cannot be created
            ApiException: If a Kubernetes lookup fails for a reason other than 404
        """
        logger.info(f"Starting reconciliation for VaultSecret {key}")

        request = self.kube.get_vault_secret(key)
        if request is None:
            # Deleted resources arrive here too; a new event will follow if it comes back
            logger.info(f"VaultSecret {key} not found, nothing to do")
            return ReconcileResult()

        try:
            existing = self.kube.get_secret(key)
        except Exception as e:
            logger.error(f"Unable to get child Secret for VaultSecret {key}: {e}")
            raise

        if existing is not None:
            logger.debug(f"Child Secret {key} already exists")
            return ReconcileResult()

        config = request.vault_config(auth_method=self.auth_method, skip_verify=self.skip_verify)
        try:
            payload = self.vault.fetch_secret(config)
        except VaultReadError as e:
            if self.fetch_failure_policy == FAIL_CLOSED:
                logger.error(f"Can't read the data from Vault for {key}: {e}")
                raise
            logger.warning(f"Can't read the data from Vault for {key}, creating an empty Secret: {e}")
            payload = None

        secret = build_secret(request, payload)

        logger.info(f"Deploying a new child Secret {secret.name} in namespace {secret.namespace}")
        try:
            self.kube.create_secret(secret)
        except Exception as e:
            logger.error(f"Failed to deploy child Secret {secret.name} in namespace {secret.namespace}: {e}")
            raise

        return ReconcileResult(requeue=True)
