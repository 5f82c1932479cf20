"""Input validation for CLI arguments."""
import re
import sys

from vault_operator.secrets.domains.models import NamespacedName

DNS1123_LABEL = r'[a-z0-9]([-a-z0-9]*[a-z0-9])?'
DNS1123_SUBDOMAIN = rf'{DNS1123_LABEL}(\.{DNS1123_LABEL})*'


def validate_key(key: str) -> NamespacedName:
    """
    Validate a 'namespace/name' reconcile key.

    Namespaces must be DNS-1123 labels (max 63 chars), names DNS-1123
    subdomains (max 253 chars).

    Args:
        key: Key to validate

    Returns:
        Parsed NamespacedName

    Raises:
        SystemExit with code 2 if validation fails
    """
    try:
        parsed = NamespacedName.parse(key)
    except ValueError:
        print(f"Error: Invalid key '{key}'", file=sys.stderr)
        print("\nKeys must look like: <namespace>/<name>", file=sys.stderr)
        print("  ✓ default/db-credentials", file=sys.stderr)
        print("  ✗ db-credentials (no namespace)", file=sys.stderr)
        sys.exit(2)

    if len(parsed.namespace) > 63 or not re.fullmatch(DNS1123_LABEL, parsed.namespace):
        print(f"Error: Invalid namespace '{parsed.namespace}'", file=sys.stderr)
        print("\nAllowed: lowercase letters, numbers and hyphens, at most 63 characters", file=sys.stderr)
        sys.exit(2)

    if len(parsed.name) > 253 or not re.fullmatch(DNS1123_SUBDOMAIN, parsed.name):
        print(f"Error: Invalid name '{parsed.name}'", file=sys.stderr)
        print("\nAllowed: lowercase letters, numbers, hyphens and dots, at most 253 characters", file=sys.stderr)
        sys.exit(2)

    return parsed
