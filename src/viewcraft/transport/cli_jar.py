"""Jenkins CLI transport running ``jenkins-cli.jar`` as a local process."""
import logging
import os
import subprocess
from typing import Optional

from .base import CommandExecutor, CommandResult, MasterConfig
from ..errors import ConfigurationError, TransportError
from ..utils.logging_config import timed

logger = logging.getLogger(__name__)


class JenkinsCLIExecutor(CommandExecutor):
    """Runs sub-commands through ``java -jar jenkins-cli.jar -s URL``.

    Credentials are handed over through the ``JENKINS_USER_ID`` and
    ``JENKINS_API_TOKEN`` environment variables, which the CLI client reads
    natively, so they never show up in the process list.
    """

    def __init__(self, master_id: str, config: MasterConfig):
        super().__init__(master_id, config)
        if not config.url:
            raise ConfigurationError(f"Master {master_id}: 'url' is required for the cli transport")

    def escape(self, value: str) -> str:
        # argv goes straight to exec without a shell; every value stays one argument
        return value

    def build_command(self, subcommand: str, *args: str) -> list[str]:
        """Full argv for a sub-command."""
        return [
            self.config.java,
            "-jar",
            os.path.expanduser(self.config.cli_jar),
            "-s",
            self.config.url,
            *self.config.extra_args,
            subcommand,
            *args,
        ]

    def _environment(self) -> dict[str, str]:
        env = dict(os.environ)
        if self.config.username:
            env["JENKINS_USER_ID"] = self.config.username
            token = self.config.get_password()
            if token:
                env["JENKINS_API_TOKEN"] = token
        return env

    @timed()
    def execute(
        self,
        subcommand: str,
        *args: str,
        input: Optional[bytes] = None,
    ) -> CommandResult:
        """Run a sub-command and capture its output."""
        cmd = self.build_command(subcommand, *args)
        command_line = " ".join([subcommand, *args])
        logger.debug(f"{self.master_id}: running {command_line}")

        try:
            proc = subprocess.run(
                cmd,
                input=input,
                capture_output=True,
                timeout=self.config.timeout,
                env=self._environment(),
                check=False,  # exit codes are reported, not raised
            )
        except FileNotFoundError as e:
            raise TransportError(
                f"Cannot launch Jenkins CLI for {self.master_id}: {e}",
                subcommand=subcommand,
            ) from e
        except subprocess.TimeoutExpired as e:
            raise TransportError(
                f"Jenkins CLI '{subcommand}' timed out after {self.config.timeout}s "
                f"on {self.master_id}",
                subcommand=subcommand,
            ) from e

        return CommandResult(
            success=proc.returncode == 0,
            output=proc.stdout.decode("utf-8", errors="replace"),
            error=proc.stderr.decode("utf-8", errors="replace"),
            exit_code=proc.returncode,
            master_id=self.master_id,
            command=command_line,
        )
