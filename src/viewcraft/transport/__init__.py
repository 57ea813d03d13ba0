"""Transports for reaching the Jenkins CLI."""
from dataclasses import fields

from .base import CommandExecutor, CommandResult, MasterConfig
from .cli_jar import JenkinsCLIExecutor
from .ssh import SSHExecutor
from ..errors import ConfigurationError

__all__ = [
    "CommandExecutor",
    "CommandResult",
    "MasterConfig",
    "JenkinsCLIExecutor",
    "SSHExecutor",
    "create_executor",
]

# Transport type registry
TRANSPORT_TYPES = {
    "cli": JenkinsCLIExecutor,
    "ssh": SSHExecutor,
}


def create_executor(master_id: str, config: dict) -> CommandExecutor:
    """Factory function to create executor instances.

    Raises:
        ConfigurationError: Unknown transport type or unknown master option
    """
    transport_type = str(config.get("type") or "").lower()
    if transport_type not in TRANSPORT_TYPES:
        raise ConfigurationError(
            f"Master {master_id}: unknown transport type {transport_type!r}; "
            f"must be one of: {', '.join(TRANSPORT_TYPES)}"
        )

    known = {f.name for f in fields(MasterConfig)}
    unknown = sorted(str(k) for k in set(config) - known)
    if unknown:
        raise ConfigurationError(
            f"Master {master_id}: unknown option(s): {', '.join(unknown)}"
        )

    executor_class = TRANSPORT_TYPES[transport_type]
    try:
        master_config = MasterConfig(**config)
    except TypeError as e:
        raise ConfigurationError(f"Master {master_id}: {e}") from e
    return executor_class(master_id, master_config)
