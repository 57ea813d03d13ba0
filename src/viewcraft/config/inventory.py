"""Jenkins master inventory and view declarations from YAML configuration."""
import logging
import os
from pathlib import Path
from typing import Optional

import yaml

from ..config_engine.parser import ViewParser
from ..config_engine.schema import ViewResource
from ..errors import ConfigurationError
from ..transport import create_executor, CommandExecutor

logger = logging.getLogger(__name__)


class MasterInventory:
    """Manages the Jenkins masters and declared views loaded from YAML.

    ```yaml
    defaults:
      timeout: 60
    masters:
      ci-main:
        type: cli
        url: https://ci.example.com/
        cli_jar: /opt/jenkins/jenkins-cli.jar
        username: deploy
    views:
      - master: ci-main
        name: release-1.0
      - master: ci-main
        name: qa
        action: append
        job: build-42
    ```
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or os.environ.get("VIEWCRAFT_CONFIG") or self._find_config()
        self._config: dict = {}
        self._load_config()

    def _find_config(self) -> str:
        """Find the masters.yaml config file."""
        search_paths = [
            Path.cwd() / "configs" / "masters.yaml",
            Path.cwd() / "masters.yaml",
            Path.home() / ".config" / "viewcraft" / "masters.yaml",
            Path("/etc/viewcraft/masters.yaml"),
        ]

        for path in search_paths:
            if path.exists():
                return str(path)

        raise FileNotFoundError(
            "Could not find masters.yaml. Create one in ./configs/masters.yaml"
        )

    def _load_config(self) -> None:
        """Load the YAML configuration."""
        with open(self.config_path) as f:
            self._config = yaml.safe_load(f) or {}

        # Apply defaults
        defaults = self._config.get("defaults", {})
        for master_id, master_config in self._config.get("masters", {}).items():
            for key, value in defaults.items():
                if key not in master_config:
                    master_config[key] = value

        self._validate_views()

    def _validate_views(self) -> None:
        """Warn about views declared against unknown masters."""
        masters = self._config.get("masters", {})
        for entry in self._config.get("views", []) or []:
            master_id = entry.get("master") if isinstance(entry, dict) else None
            if master_id and master_id not in masters:
                logger.warning(
                    f"View '{entry.get('name')}' references unknown master: {master_id}"
                )

    def get_master_ids(self) -> list[str]:
        """Get all master IDs."""
        return list(self._config.get("masters", {}).keys())

    def get_master_config(self, master_id: str) -> dict:
        """Get raw config for a master."""
        masters = self._config.get("masters", {})
        if master_id not in masters:
            raise KeyError(f"Unknown master: {master_id}")
        return masters[master_id]

    def get_executor(self, master_id: str) -> CommandExecutor:
        """Create a command executor for a master.

        A new executor is returned on every call; use it as a context
        manager so SSH sessions get closed.
        """
        return create_executor(master_id, dict(self.get_master_config(master_id)))

    def default_master(self) -> str:
        """The only master, when exactly one is configured."""
        master_ids = self.get_master_ids()
        if len(master_ids) != 1:
            raise ConfigurationError(
                f"No master given and {len(master_ids)} are configured; pick one of: "
                f"{', '.join(master_ids) or '(none)'}"
            )
        return master_ids[0]

    def get_views(self, master_id: Optional[str] = None) -> list[ViewResource]:
        """Parse declared views, in file order.

        Args:
            master_id: Only return views for this master

        Raises:
            ConfigurationError: If a declaration is invalid or has no master
        """
        parser = ViewParser()
        fallback = self.default_master() if len(self.get_master_ids()) == 1 else None
        views = []
        for entry in self._config.get("views", []) or []:
            view = parser.parse(entry, master=fallback)
            if view.master is None:
                raise ConfigurationError(f"View '{view.name}' does not name a master")
            if master_id and view.master != master_id:
                continue
            views.append(view)
        return views
