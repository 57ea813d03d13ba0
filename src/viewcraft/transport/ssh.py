"""Jenkins SSH CLI transport.

Jenkins exposes its CLI on a dedicated SSH port: every sub-command is a
remote "exec" request on that port, e.g. ``ssh -p 53801 deploy@ci get-view qa``.
"""
import logging
import os
import shlex
import socket
from typing import Optional

import paramiko

from .base import CommandExecutor, CommandResult, MasterConfig
from ..errors import ConfigurationError, TransportError
from ..utils.connection import with_retry
from ..utils.logging_config import timed

logger = logging.getLogger(__name__)


class SSHExecutor(CommandExecutor):
    """Runs sub-commands over the Jenkins SSH CLI endpoint."""

    def __init__(self, master_id: str, config: MasterConfig):
        super().__init__(master_id, config)
        if not config.host:
            raise ConfigurationError(f"Master {master_id}: 'host' is required for the ssh transport")
        self._ssh: Optional[paramiko.SSHClient] = None

    @property
    def is_connected(self) -> bool:
        return self._ssh is not None

    def escape(self, value: str) -> str:
        # The remote side splits the exec string into words
        return shlex.quote(value)

    def _connect(self) -> paramiko.SSHClient:
        ssh = paramiko.SSHClient()
        ssh.load_system_host_keys()
        ssh.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        key_filename = (
            os.path.expanduser(self.config.key_filename)
            if self.config.key_filename else None
        )
        ssh.connect(
            hostname=self.config.host,
            port=self.config.port,
            username=self.config.username,
            password=self.config.get_password() or None,
            key_filename=key_filename,
            timeout=self.config.timeout,
            allow_agent=key_filename is None,
            look_for_keys=key_filename is None,
        )
        return ssh

    def open(self) -> None:
        """Connect to the SSH CLI endpoint, retrying transient failures."""
        if self._ssh:
            return
        logger.info(f"Connecting to Jenkins SSH CLI {self.master_id} at {self.config.host}:{self.config.port}")
        connect = with_retry(
            max_attempts=self.config.retries,
            min_wait=self.config.retry_delay,
        )(self._connect)
        try:
            self._ssh = connect()
        except (paramiko.SSHException, OSError) as e:
            raise TransportError(f"Cannot connect to {self.master_id}: {e}") from e
        logger.info(f"Connected to {self.master_id}")

    def close(self) -> None:
        if self._ssh:
            self._ssh.close()
            self._ssh = None
            logger.info(f"Disconnected from {self.master_id}")

    @timed()
    def execute(
        self,
        subcommand: str,
        *args: str,
        input: Optional[bytes] = None,
    ) -> CommandResult:
        """Run a sub-command over SSH and capture its output."""
        self.open()
        ssh = self._ssh  # Local reference for type narrowing
        command_line = " ".join([subcommand, *args])
        logger.debug(f"{self.master_id}: running {command_line}")

        try:
            stdin, stdout, stderr = ssh.exec_command(
                command_line, timeout=self.config.timeout
            )
            if input is not None:
                stdin.write(input)
                stdin.flush()
            stdin.channel.shutdown_write()
            out = stdout.read().decode("utf-8", errors="replace")
            err = stderr.read().decode("utf-8", errors="replace")
            exit_code = stdout.channel.recv_exit_status()
        except (paramiko.SSHException, socket.timeout, OSError) as e:
            # Session is unusable after a channel failure
            self.close()
            raise TransportError(
                f"SSH call '{subcommand}' failed on {self.master_id}: {e}",
                subcommand=subcommand,
            ) from e

        return CommandResult(
            success=exit_code == 0,
            output=out,
            error=err,
            exit_code=exit_code,
            master_id=self.master_id,
            command=command_line,
        )
