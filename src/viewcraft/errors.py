"""
Error taxonomy.

Every failure during a convergence pass is fatal to that pass. The types
below let callers tell a bad declaration apart from a broken transport or a
server answering with garbage.
"""
from typing import Optional


class ViewcraftError(Exception):
    """Base class for all viewcraft exceptions."""


class ConfigurationError(ViewcraftError):
    """Raised when a declared view or inventory entry is invalid.

    Always detected before any call reaches the transport.
    """


class TransportError(ViewcraftError):
    """Raised when a call to the Jenkins CLI fails."""

    def __init__(
        self,
        message: str,
        subcommand: Optional[str] = None,
        exit_code: Optional[int] = None,
        stderr: str = "",
    ):
        super().__init__(message)
        self.subcommand = subcommand
        self.exit_code = exit_code
        self.stderr = stderr


class MalformedStateError(ViewcraftError):
    """Raised when a view reported as present is not a parseable document."""


class PreconditionError(ViewcraftError):
    """Raised before an operation that makes no sense in the current state."""


class ViewDoesNotExist(PreconditionError):
    """The target view must exist on the master for this action."""

    def __init__(self, view: str, action: str):
        super().__init__(
            f"The Jenkins view '{view}' does not exist. In order to {action} "
            f"'{view}', that view must first exist on the Jenkins master!"
        )
        self.view = view
        self.action = action
