"""Top-level package for the mcp-deploy provisioning tool."""

# Re-export commonly used namespaces for convenience when running as a module.
from . import cli, deploy, utils  # noqa: F401

__all__ = ["cli", "deploy", "utils"]
