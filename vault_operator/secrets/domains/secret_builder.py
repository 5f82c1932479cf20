"""Turn Vault payloads into child Secret objects."""
import logging
from typing import Any, Dict, Optional

from .errors import PayloadDecodeError
from .models import MaterializedSecret, OwnerReference, VaultSecretRequest

logger = logging.getLogger(__name__)


def decode_payload(payload: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """
    Extract the secret values from a Vault payload.

    Args:
        payload: Payload returned by VaultSecretClient.fetch_secret, or None
            when there is nothing to copy

    Returns:
        The string-keyed, string-valued 'data' mapping (empty for None)

    Raises:
        PayloadDecodeError: If 'data' is absent, not a mapping, or holds
            non-string keys or values
    """
    if payload is None:
        return {}

    if not isinstance(payload, dict) or "data" not in payload:
        raise PayloadDecodeError("Vault payload has no 'data' field")

    data = payload["data"]
    if not isinstance(data, dict):
        raise PayloadDecodeError(f"Vault payload 'data' must be a mapping, got {type(data).__name__}")

    for key, value in data.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise PayloadDecodeError(f"Vault payload entry '{key}' is not a string value")

    return data


def build_secret(request: VaultSecretRequest, payload: Optional[Dict[str, Any]]) -> MaterializedSecret:
    """
    Build the child Secret for a VaultSecret.

    The Secret shares the request's namespace/name, carries a single
    annotation mapping the request's apiVersion to its kind, and is owned by
    the request so the garbage collector deletes it along with its owner.
    """
    values = decode_payload(payload)
    if not values:
        logger.warning(f"Secret {request.key} will be created without data")

    return MaterializedSecret(
        name=request.name,
        namespace=request.namespace,
        data={k: v.encode("utf-8") for k, v in values.items()},
        annotations={request.api_version: request.kind},
        owner_references=[
            OwnerReference(
                api_version=request.api_version,
                kind=request.kind,
                name=request.name,
                uid=request.uid,
            )
        ],
    )
