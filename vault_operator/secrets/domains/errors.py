"""Error taxonomy for the vault operator."""


class VaultOperatorError(Exception):
    """Base class for all operator errors."""
    pass


class InvalidRequestError(VaultOperatorError):
    """VaultSecret resource is missing a required field."""
    pass


class VaultAuthError(VaultOperatorError):
    """Authentication against Vault failed."""
    pass


class TokenReadError(VaultAuthError):
    """Service account token could not be read."""
    pass


class UnsupportedAuthMethodError(VaultAuthError):
    """Configured auth method is not the Kubernetes JWT exchange."""
    pass


class VaultReadError(VaultOperatorError):
    """Reading the secret path failed after a successful login."""
    pass


class PayloadDecodeError(VaultOperatorError):
    """Vault payload does not carry a string-keyed 'data' mapping."""
    pass


class SecretCreateError(VaultOperatorError):
    """Kubernetes refused to create the child Secret."""
    pass
