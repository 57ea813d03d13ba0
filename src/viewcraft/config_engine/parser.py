"""Parser for declared view resources.

Converts dict/YAML input to validated ViewResource objects. All checks run
before any transport call is made.
"""
import logging
import re
from typing import Any, Optional

from ..errors import ConfigurationError
from .schema import Action, DEFAULT_ACTION, ViewResource

logger = logging.getLogger(__name__)

# Characters XML 1.0 cannot carry in a text node
_INVALID_XML_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")


class ViewParser:
    """Parse and validate view declarations."""

    def parse(self, config: dict[str, Any], master: Optional[str] = None) -> ViewResource:
        """
        Parse a view declaration into a ViewResource.

        Args:
            config: Dict with name, and optionally action, job, master
            master: Master id to use when the declaration names none

        Returns:
            ViewResource object

        Raises:
            ConfigurationError: If the declaration is invalid
        """
        if not isinstance(config, dict):
            raise ConfigurationError(f"View declaration must be a mapping, got {type(config).__name__}")

        action = self.parse_action(config.get("action"))
        return self.build(
            name=config.get("name"),
            action=action,
            job=config.get("job"),
            master=config.get("master") or master,
        )

    def parse_action(self, value: Any) -> Action:
        """Resolve an action name, defaulting to create."""
        if value is None or value == "":
            return DEFAULT_ACTION
        if isinstance(value, Action):
            return value
        try:
            return Action(str(value).lower())
        except ValueError:
            choices = ", ".join(a.value for a in Action)
            raise ConfigurationError(
                f"Invalid action: {value}. Must be one of: {choices}"
            )

    def build(
        self,
        name: Any,
        action: Action = DEFAULT_ACTION,
        job: Any = None,
        master: Optional[str] = None,
    ) -> ViewResource:
        """Validate individual fields and build a ViewResource."""
        name = self._require_text(name, "name")

        if action == Action.APPEND:
            job = self._require_text(job, "job", context=f"append to view '{name}'")
        elif job is not None:
            logger.debug(f"jenkins_view[{name}]: 'job' is only used by append, ignoring")
            job = None

        return ViewResource(name=name, job=job, action=action, master=master)

    def _require_text(self, value: Any, field_name: str, context: str = "") -> str:
        where = f" to {context}" if context else ""
        if value is None:
            raise ConfigurationError(f"Missing required field{where}: {field_name}")
        if not isinstance(value, str):
            raise ConfigurationError(
                f"Field '{field_name}' must be a string, got {type(value).__name__}"
            )
        if not value.strip():
            raise ConfigurationError(f"Field '{field_name}' must not be empty")
        if _INVALID_XML_CHARS.search(value):
            raise ConfigurationError(
                f"Field '{field_name}' contains control characters: {value!r}"
            )
        try:
            # Lone surrogates come from undecodable bytes in argv
            value.encode("utf-8")
        except UnicodeEncodeError:
            raise ConfigurationError(
                f"Field '{field_name}' is not valid UTF-8 text: {value!r}"
            )
        return value
