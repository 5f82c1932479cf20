"""HashiCorp Vault client wrapper."""
import logging
from typing import Any, Callable, Dict, Optional

import hvac
import hvac.exceptions
import requests

from .errors import TokenReadError, UnsupportedAuthMethodError, VaultAuthError, VaultReadError
from .models import JWT_AUTH_METHOD, VaultConfig
from .token_source import FileTokenSource, TokenSource

logger = logging.getLogger(__name__)

_VAULT_ERRORS = (hvac.exceptions.VaultError, requests.exceptions.RequestException)


class VaultSecretClient:
    """
    Fetches secret payloads from Vault using Kubernetes JWT auth.

    A fresh hvac connection is built and logged in on every fetch; session
    tokens are never cached between calls.
    """

    def __init__(
        self,
        token_source: Optional[TokenSource] = None,
        connection_factory: Callable[..., hvac.Client] = hvac.Client,
    ):
        self.token_source = token_source or FileTokenSource()
        self.connection_factory = connection_factory

    def _connect(self, config: VaultConfig) -> hvac.Client:
        if config.skip_verify:
            logger.warning(f"TLS verification is disabled for Vault at {config.address}")
        return self.connection_factory(url=config.address, verify=not config.skip_verify)

    def _login(self, connection: hvac.Client, config: VaultConfig) -> str:
        try:
            jwt = self.token_source.resolve().decode("utf-8").strip()
        except UnicodeDecodeError as e:
            raise TokenReadError(f"Service account token is not valid UTF-8: {e}") from e

        try:
            response = connection.auth.kubernetes.login(
                role=config.role,
                jwt=jwt,
                use_token=False,
                mount_point=config.auth_path,
            )
        except _VAULT_ERRORS as e:
            logger.error(f"Failed to authenticate at auth/{config.auth_path}/login as role '{config.role}': {e}")
            raise VaultAuthError(f"Vault login failed for role '{config.role}': {e}") from e

        client_token = ((response or {}).get("auth") or {}).get("client_token")
        if not client_token:
            raise VaultAuthError(f"Vault login for role '{config.role}' returned no client token")
        return client_token

    def fetch_secret(self, config: VaultConfig) -> Dict[str, Any]:
        """
        Log in to Vault and read the secret at config.path.

        Args:
            config: Vault address, path, role and auth settings

        Returns:
            The 'data' block of the Vault response; for KV v2 this holds a
            nested 'data' mapping with the secret values

        Raises:
            UnsupportedAuthMethodError: If config.auth_method is not 'jwt'
            VaultAuthError: If the token cannot be read or login fails
            VaultReadError: If the read fails or the path holds nothing
        """
        logger.info(f"Fetching Vault secret '{config.path}' from {config.address}")

        # Checked before the connection is built so nothing touches the network
        if config.auth_method != JWT_AUTH_METHOD:
            raise UnsupportedAuthMethodError(f"Unsupported auth method: {config.auth_method}")

        connection = self._connect(config)
        connection.token = self._login(connection, config)

        try:
            response = connection.read(config.path)
        except _VAULT_ERRORS as e:
            logger.error(f"Can't read secret '{config.path}' from Vault: {e}")
            raise VaultReadError(f"Failed to read '{config.path}': {e}") from e

        if response is None:
            raise VaultReadError(f"No secret found at '{config.path}'")

        return response.get("data") or {}
