"""Shared fixtures: an in-memory Jenkins master behind the executor interface."""
import shlex
from typing import Optional

import pytest

from viewcraft.transport.base import CommandExecutor, CommandResult, MasterConfig


def jenkins_view_xml(name: str, indent: str = "  ") -> str:
    """A list view document the way the Jenkins CLI prints it."""
    i1, i2 = indent, indent * 2
    return (
        "<?xml version='1.1' encoding='UTF-8'?>\n"
        "<hudson.model.ListView>\n"
        f"{i1}<name>{name}</name>\n"
        f"{i1}<filterExecutors>false</filterExecutors>\n"
        f"{i1}<filterQueue>false</filterQueue>\n"
        f'{i1}<properties class="hudson.model.View$PropertyList"/>\n'
        f"{i1}<jobNames>\n"
        f'{i2}<comparator class="hudson.util.CaseInsensitiveComparator"/>\n'
        f"{i1}</jobNames>\n"
        f"{i1}<jobFilters/>\n"
        f"{i1}<columns>\n"
        f"{i2}<hudson.views.StatusColumn/>\n"
        f"{i2}<hudson.views.WeatherColumn/>\n"
        f"{i2}<hudson.views.JobColumn/>\n"
        f"{i2}<hudson.views.LastSuccessColumn/>\n"
        f"{i2}<hudson.views.LastFailureColumn/>\n"
        f"{i2}<hudson.views.LastDurationColumn/>\n"
        f"{i2}<hudson.views.BuildButtonColumn/>\n"
        f"{i1}</columns>\n"
        "</hudson.model.ListView>\n"
    )


class FakeExecutor(CommandExecutor):
    """Executor backed by a dict of view documents.

    ``get-view`` answers from ``views`` (absent views print nothing), and the
    mutating sub-commands update it, so consecutive passes see each other's
    effects. Every call is recorded in ``calls``.
    """

    def __init__(
        self,
        views: Optional[dict] = None,
        fail: Optional[set] = None,
        escape_fn=shlex.quote,
        master_id: str = "ci-test",
    ):
        super().__init__(master_id, MasterConfig(type="fake"))
        self.views = dict(views or {})
        self.jobs: dict[str, list[str]] = {}
        self.fail = set(fail or ())
        self.calls: list[tuple] = []
        self.get_view_result: Optional[CommandResult] = None
        self._escape_fn = escape_fn
        self.opened = False
        self.closed = False

    def open(self) -> None:
        self.opened = True

    def close(self) -> None:
        self.closed = True

    def escape(self, value: str) -> str:
        return self._escape_fn(value)

    @property
    def mutating_calls(self) -> list[tuple]:
        return [c for c in self.calls if c[0] != "get-view"]

    @property
    def load_count(self) -> int:
        return sum(1 for c in self.calls if c[0] == "get-view")

    def execute(self, subcommand, *args, input=None):
        self.calls.append((subcommand, list(args), input))
        command = " ".join([subcommand, *args])

        if subcommand in self.fail:
            return CommandResult(
                False, error="ERROR: boom\n", exit_code=1,
                master_id=self.master_id, command=command,
            )

        if subcommand == "get-view":
            if self.get_view_result is not None:
                return self.get_view_result
            return CommandResult(
                True, output=self.views.get(args[0], ""), exit_code=0,
                master_id=self.master_id, command=command,
            )

        name = args[0]
        if subcommand in ("create-view", "update-view"):
            self.views[name] = input.decode("utf-8")
        elif subcommand == "delete-view":
            self.views.pop(name, None)
        elif subcommand == "add-job-to-view":
            self.jobs.setdefault(name, []).append(args[1])
        return CommandResult(True, exit_code=0, master_id=self.master_id, command=command)


@pytest.fixture
def fake_executor():
    return FakeExecutor()


@pytest.fixture
def masters_yaml(tmp_path):
    """A masters.yaml with one cli master and a few declared views."""
    path = tmp_path / "masters.yaml"
    path.write_text("""
defaults:
  timeout: 30
  not_found_exit_codes: [3]

masters:
  ci-test:
    type: cli
    name: "Test CI"
    url: https://ci.example.com/
    cli_jar: /opt/jenkins/jenkins-cli.jar
    username: deploy

views:
  - name: release-1.0
  - name: qa
    action: append
    job: build-42
  - name: release-0.9
    action: delete
""")
    return str(path)
