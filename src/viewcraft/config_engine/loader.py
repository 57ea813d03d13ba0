"""State loader: what does the master currently hold for a view?"""
import logging
import re
from typing import Optional

from ..errors import TransportError
from ..transport.base import CommandExecutor, CommandResult
from .document import parse_document
from .schema import ObservedView

logger = logging.getLogger(__name__)

# The Jenkins CLI reports a missing view as human-readable text. Older
# releases spell it "No viwe", so both spellings are matched.
NOT_FOUND_PATTERN = re.compile(r"No\s+vi(?:ew|we)", re.IGNORECASE)


def is_not_found(result: CommandResult, not_found_exit_codes: list[int]) -> bool:
    """Classify a ``get-view`` result as "view does not exist".

    A successful call is absent when it printed nothing or printed the
    marker outside of an XML document. A failed call is absent only when
    its exit code is a known not-found code and its text is empty or
    carries the marker.
    """
    text = f"{result.output}\n{result.error}"
    if result.success:
        output = result.output.strip()
        if not output:
            return True
        if output.startswith("<"):
            return False
        return bool(NOT_FOUND_PATTERN.search(text))
    if result.exit_code in not_found_exit_codes:
        return not text.strip() or bool(NOT_FOUND_PATTERN.search(text))
    return False


class StateLoader:
    """Loads the observed state of one view, once.

    One loader belongs to one convergence pass. The first ``load`` queries
    the master; later calls return the same ``ObservedView``.
    """

    def __init__(self, executor: CommandExecutor, name: str):
        self.executor = executor
        self.name = name
        self._observed: Optional[ObservedView] = None

    @property
    def loaded(self) -> bool:
        return self._observed is not None

    def load(self) -> ObservedView:
        """Return the observed view, querying the master on first use.

        Raises:
            TransportError: If ``get-view`` failed for a reason other than
                the view being absent
            MalformedStateError: If the view exists but its document
                cannot be parsed
        """
        if self._observed is not None:
            return self._observed

        logger.debug(f"Load jenkins_view[{self.name}] view information")
        result = self.executor.execute("get-view", self.executor.escape(self.name))

        if is_not_found(result, self.executor.not_found_exit_codes):
            logger.debug(f"jenkins_view[{self.name}] does not exist on {self.executor.master_id}")
            self._observed = ObservedView.absent()
            return self._observed

        if not result.success:
            raise TransportError(
                f"Jenkins CLI command 'get-view' failed on {self.executor.master_id} "
                f"with exit code {result.exit_code}: {result.error.strip()}",
                subcommand="get-view",
                exit_code=result.exit_code,
                stderr=result.error,
            )

        logger.debug(f"Parse jenkins_view[{self.name}] as XML")
        document = parse_document(result.output)
        self._observed = ObservedView.present(result.output, document)
        return self._observed
