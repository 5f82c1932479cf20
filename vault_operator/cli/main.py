"""CLI entrypoint for vault-operator."""
import sys
import signal
import argparse
import logging

from vault_operator import __version__
from .validators import validate_key

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr
    )


def _load_kube_config():
    """Load in-cluster credentials, falling back to the local kubeconfig."""
    from kubernetes import config as k8s_config

    try:
        k8s_config.load_incluster_config()
        logger.debug("Loaded in-cluster Kubernetes config")
    except k8s_config.ConfigException:
        k8s_config.load_kube_config()
        logger.debug("Loaded Kubernetes config from kubeconfig")


def _build_reconciler(args):
    from vault_operator.secrets.domains.config_loader import load_config
    from vault_operator.secrets.workflows.reconciler import VaultSecretReconciler

    config = load_config(args.config)
    _load_kube_config()
    return config, VaultSecretReconciler.from_config(config)


def cmd_version(args):
    """Show version information."""
    print(f"vault-operator {__version__}")


def cmd_config_show(args):
    """Show the resolved configuration."""
    import yaml
    from vault_operator.secrets.domains.config_loader import _get_config_path, load_config

    config_path = _get_config_path(args.config)
    config = load_config(args.config)

    print(f"Config path: {config_path if config_path else '(none, using built-in defaults)'}")
    print(yaml.safe_dump(config, default_flow_style=False, sort_keys=True), end="")


def cmd_reconcile(args):
    """Reconcile a single VaultSecret once."""
    key = validate_key(args.key)
    _, reconciler = _build_reconciler(args)

    result = reconciler.reconcile(key)
    if result.requeue:
        print(f"Secret {key} created")
    else:
        print(f"Secret {key} already up to date (or VaultSecret not found)")


def cmd_run(args):
    """Run the controller until interrupted."""
    from vault_operator.secrets.workflows.controller import Controller

    config, reconciler = _build_reconciler(args)
    controller = Controller.from_config(config, reconciler, namespace=args.namespace)

    signal.signal(signal.SIGTERM, lambda signum, frame: controller.stop())
    controller.run()


def main():
    """Main CLI entrypoint.

    Exit codes:
        0 - Success
        1 - Runtime errors (configuration, Vault, Kubernetes API, etc.)
        2 - Usage errors (invalid arguments, invalid key format, etc.)
    """
    parser = argparse.ArgumentParser(
        prog="vault-operator",
        description="vault-operator - materialize HashiCorp Vault secrets as Kubernetes Secrets",
        epilog="""
Exit codes:
  0 - Success
  1 - Runtime error (configuration, Vault, Kubernetes API, etc.)
  2 - Usage error (invalid arguments, invalid key format, etc.)

Environment variables:
  VAULT_OPERATOR_CONFIG             - Config file path (overridden by --config)
  VAULT_SKIP_VERIFY                 - Disable TLS verification towards Vault
  VAULT_OPERATOR_FETCH_POLICY       - fail-open or fail-closed
  KUBERNETES_SERVICE_ACCOUNT_TOKEN  - Service account token file
  VAULT_JWT_FILE                    - Service account token file (secondary)

Configuration:
  Default location: /etc/vault-operator/config.yml
  View current: Run 'vault-operator config show'
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        "--config",
        help="Path to config file"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # version command
    _version_parser = subparsers.add_parser(
        "version",
        help="Show version information",
        description="Display the current version of vault-operator"
    )

    # run command
    run_parser = subparsers.add_parser(
        "run",
        help="Run the controller",
        description="""
Watch VaultSecret resources and create a child Secret for each one.

Kubernetes credentials are taken from the in-cluster service account,
falling back to the local kubeconfig.
        """
    )
    run_parser.add_argument(
        "--namespace",
        help="Only watch this namespace (default: all namespaces)"
    )

    # reconcile command
    reconcile_parser = subparsers.add_parser(
        "reconcile",
        help="Reconcile one VaultSecret",
        description="""
Run a single reconciliation for one VaultSecret.

If the child Secret does not exist it is fetched from Vault and created.
An existing Secret is left untouched.

Exit codes:
  0 - Secret created or already present
  1 - Vault or Kubernetes error
  2 - Invalid key format
        """
    )
    reconcile_parser.add_argument(
        "key",
        help="VaultSecret to reconcile (format: namespace/name)"
    )

    # config command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="Inspect vault-operator configuration"
    )
    config_subparsers = config_parser.add_subparsers(dest="config_command")

    # config show command
    _config_show_parser = config_subparsers.add_parser(
        "show",
        help="Show effective configuration",
        description="""
Display the configuration file in use and the effective settings,
including defaults and environment overrides.
        """
    )

    args = parser.parse_args()

    # If no command provided, show help and exit with usage error code
    if not args.command:
        parser.print_help()
        sys.exit(2)

    _configure_logging(args.verbose)

    # Route to command handlers
    try:
        if args.command == "version":
            cmd_version(args)
        elif args.command == "run":
            cmd_run(args)
        elif args.command == "reconcile":
            cmd_reconcile(args)
        elif args.command == "config":
            if args.config_command == "show":
                cmd_config_show(args)
            else:
                config_parser.print_help()
                sys.exit(2)
        else:
            parser.print_help()
            sys.exit(2)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
