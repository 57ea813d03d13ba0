"""Base command executor abstraction for the Jenkins CLI."""
import os
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from ..errors import TransportError

logger = logging.getLogger(__name__)


@dataclass
class MasterConfig:
    """Connection settings for a Jenkins master."""
    type: str
    name: str = ""
    # cli transport
    url: Optional[str] = None
    cli_jar: str = "jenkins-cli.jar"
    java: str = "java"
    # ssh transport
    host: Optional[str] = None
    port: int = 22
    key_filename: Optional[str] = None
    # shared
    username: Optional[str] = None
    password: Optional[str] = None
    password_env: str = "JENKINS_API_TOKEN"
    timeout: int = 60
    retries: int = 3
    retry_delay: float = 2
    not_found_exit_codes: list[int] = field(default_factory=lambda: [3])
    extra_args: list[str] = field(default_factory=list)

    def get_password(self) -> str:
        """Get password or API token from config or environment variable."""
        if self.password:
            return self.password
        return os.environ.get(self.password_env, "")


class CommandResult:
    """Result of a CLI call on a master."""

    def __init__(
        self,
        success: bool,
        output: str = "",
        error: str = "",
        exit_code: Optional[int] = None,
        master_id: str = "",
        command: str = "",
    ):
        self.success = success
        self.output = output
        self.error = error
        self.exit_code = exit_code
        self.master_id = master_id
        self.command = command

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "output": self.output,
            "error": self.error,
            "exit_code": self.exit_code,
            "master_id": self.master_id,
            "command": self.command,
        }

    def __repr__(self) -> str:
        status = "OK" if self.success else f"FAILED({self.exit_code})"
        return f"CommandResult({status}, master={self.master_id}, command={self.command!r})"


class CommandExecutor(ABC):
    """Runs Jenkins CLI sub-commands against one master."""

    def __init__(self, master_id: str, config: MasterConfig):
        self.master_id = master_id
        self.config = config

    @property
    def not_found_exit_codes(self) -> list[int]:
        return self.config.not_found_exit_codes

    # Lifecycle
    def open(self) -> None:
        """Prepare the transport (no-op unless a session is needed)."""

    def close(self) -> None:
        """Release the transport."""

    @abstractmethod
    def escape(self, value: str) -> str:
        """Make ``value`` safe to pass as a single CLI argument."""
        pass

    @abstractmethod
    def execute(
        self,
        subcommand: str,
        *args: str,
        input: Optional[bytes] = None,
    ) -> CommandResult:
        """Run a sub-command and capture its result.

        A non-zero exit is reported in the result, not raised.

        Raises:
            TransportError: If the CLI could not be reached at all
        """
        pass

    def execute_checked(
        self,
        subcommand: str,
        *args: str,
        input: Optional[bytes] = None,
    ) -> str:
        """Run a mutating sub-command, failing hard on a non-zero exit.

        Returns:
            Captured standard output

        Raises:
            TransportError: On any failure
        """
        result = self.execute(subcommand, *args, input=input)
        if not result.success:
            logger.error(
                f"{self.master_id}: '{subcommand}' failed "
                f"(exit {result.exit_code}): {result.error.strip()}"
            )
            raise TransportError(
                f"Jenkins CLI command '{subcommand}' failed on {self.master_id} "
                f"with exit code {result.exit_code}: {result.error.strip()}",
                subcommand=subcommand,
                exit_code=result.exit_code,
                stderr=result.error,
            )
        return result.output

    # Context manager support
    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
