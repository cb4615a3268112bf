"""stackwatch — GitOps reconciliation for Docker Compose stacks."""

__version__ = "0.1.0"
