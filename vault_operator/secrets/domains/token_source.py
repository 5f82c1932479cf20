"""Service account token resolution for Vault's Kubernetes auth."""
import os
import logging
from typing import Optional

from .errors import TokenReadError

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/token"
TOKEN_FILE_ENV_VARS = ("KUBERNETES_SERVICE_ACCOUNT_TOKEN", "VAULT_JWT_FILE")


class TokenSource:
    """Anything that can hand out the workload's identity token."""

    def resolve(self) -> bytes:
        raise NotImplementedError


class FileTokenSource(TokenSource):
    """
    Read the projected service account token from disk.

    The token is re-read on every call; the kubelet rotates the file and
    nothing here tracks expiry.
    """

    def __init__(self, default_path: str = DEFAULT_TOKEN_FILE):
        self.default_path = default_path

    def token_path(self) -> str:
        """
        Resolve which file holds the token.

        Priority order:
        1. KUBERNETES_SERVICE_ACCOUNT_TOKEN environment variable
        2. VAULT_JWT_FILE environment variable
        3. Default service account mount

        Returns:
            Path to the token file
        """
        for env_var in TOKEN_FILE_ENV_VARS:
            path: Optional[str] = os.getenv(env_var)
            if path:
                logger.debug(f"Using token file from {env_var}: {path}")
                return path
        return self.default_path

    def resolve(self) -> bytes:
        """
        Read the raw token bytes.

        Raises:
            TokenReadError: If the token file is missing or unreadable
        """
        path = self.token_path()
        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError as e:
            raise TokenReadError(f"Failed to read service account token from {path}: {e}") from e
