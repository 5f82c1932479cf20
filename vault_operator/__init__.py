"""Materializes HashiCorp Vault secrets into Kubernetes Secrets."""

__version__ = "0.1.0"
