"""Tests for the Config Engine."""
import logging

import pytest

from viewcraft.config_engine import (
    Action,
    CollectingSink,
    ConvergenceEngine,
    EventType,
    LoggingSink,
    ObservedView,
    PlannedChange,
    ViewDiffEngine,
    ViewParser,
    ViewPlan,
    ViewResource,
    discard,
    fan_out,
    parse_document,
    render_view_xml,
    summarize_plan,
)
from viewcraft.config_engine.schema import ConvergeEvent
from viewcraft.errors import (
    ConfigurationError,
    PreconditionError,
    TransportError,
    ViewDoesNotExist,
)

from conftest import FakeExecutor, jenkins_view_xml


def observed(xml: str) -> ObservedView:
    return ObservedView.present(xml, parse_document(xml))


class TestViewParser:
    """Tests for the ViewParser."""

    def test_parse_minimal(self):
        """A name alone declares a view to create."""
        view = ViewParser().parse({"name": "release-1.0"})
        assert view.name == "release-1.0"
        assert view.action == Action.CREATE
        assert view.job is None
        assert view.master is None

    def test_parse_append(self):
        view = ViewParser().parse({"name": "qa", "action": "append", "job": "build-42"})
        assert view.action == Action.APPEND
        assert view.job == "build-42"

    def test_parse_master_fallback(self):
        """The fallback master is used only when the entry names none."""
        parser = ViewParser()
        assert parser.parse({"name": "qa"}, master="ci-a").master == "ci-a"
        assert parser.parse({"name": "qa", "master": "ci-b"}, master="ci-a").master == "ci-b"

    def test_parse_action_case_insensitive(self):
        assert ViewParser().parse_action("DELETE") == Action.DELETE

    def test_parse_action_default(self):
        parser = ViewParser()
        assert parser.parse_action(None) == Action.CREATE
        assert parser.parse_action("") == Action.CREATE

    def test_invalid_action(self):
        with pytest.raises(ConfigurationError, match="Invalid action"):
            ViewParser().parse({"name": "qa", "action": "rename"})

    def test_missing_name(self):
        with pytest.raises(ConfigurationError, match="name"):
            ViewParser().parse({"action": "create"})

    def test_empty_name(self):
        with pytest.raises(ConfigurationError, match="must not be empty"):
            ViewParser().parse({"name": "   "})

    def test_name_not_string(self):
        with pytest.raises(ConfigurationError, match="must be a string"):
            ViewParser().parse({"name": 42})

    def test_name_with_control_character(self):
        with pytest.raises(ConfigurationError, match="control characters"):
            ViewParser().parse({"name": "qa\x07"})

    def test_name_not_utf8(self):
        """Undecodable argv bytes arrive as lone surrogates and are rejected."""
        with pytest.raises(ConfigurationError, match="not valid UTF-8"):
            ViewParser().parse({"name": "qa\udcff"})

    def test_job_not_utf8(self):
        with pytest.raises(ConfigurationError, match="'job' is not valid UTF-8"):
            ViewParser().parse({"name": "qa", "action": "append", "job": "build\udcff"})

    def test_append_requires_job(self):
        with pytest.raises(ConfigurationError, match="job"):
            ViewParser().parse({"name": "qa", "action": "append"})

    def test_job_dropped_for_other_actions(self):
        """Job only means something for append."""
        view = ViewParser().parse({"name": "qa", "action": "delete", "job": "build-42"})
        assert view.job is None

    def test_declaration_must_be_mapping(self):
        with pytest.raises(ConfigurationError, match="mapping"):
            ViewParser().parse(["qa"])

    def test_resource_str(self):
        assert str(ViewResource(name="qa")) == "jenkins_view[qa]"


class TestViewDiffEngine:
    """Tests for planning (no transport involved)."""

    def test_create_absent(self):
        """An absent view gets created and then configured."""
        plan = ViewDiffEngine().plan(ViewResource(name="release-1.0"), ObservedView.absent())
        assert [c.subcommand for c in plan.changes] == ["create-view", "update-view"]
        assert plan.changes[0].input == render_view_xml("release-1.0")
        assert plan.changes[1].input == render_view_xml("release-1.0")
        assert plan.skipped == []

    def test_create_in_sync(self):
        """An existing view in sync needs nothing."""
        plan = ViewDiffEngine().plan(
            ViewResource(name="release-1.0"),
            observed(jenkins_view_xml("release-1.0", indent="    ")),
        )
        assert plan.no_change
        assert plan.skipped == [
            "jenkins_view[release-1.0] exists - skipping",
            "jenkins_view[release-1.0] config up to date - skipping",
        ]

    def test_create_drifted(self):
        """An existing view with drifted config is only updated."""
        plan = ViewDiffEngine().plan(
            ViewResource(name="release-1.0"),
            observed(jenkins_view_xml("release-1.0-old")),
        )
        assert [c.subcommand for c in plan.changes] == ["update-view"]
        assert plan.changes[0].description == "Update jenkins_view[release-1.0] config"

    def test_update_absent_raises(self):
        with pytest.raises(ViewDoesNotExist) as exc_info:
            ViewDiffEngine().plan(
                ViewResource(name="qa", action=Action.UPDATE), ObservedView.absent()
            )
        assert isinstance(exc_info.value, PreconditionError)
        assert "must first exist" in str(exc_info.value)

    def test_update_in_sync(self):
        plan = ViewDiffEngine().plan(
            ViewResource(name="qa", action=Action.UPDATE), observed(jenkins_view_xml("qa"))
        )
        assert plan.no_change

    def test_delete_present(self):
        plan = ViewDiffEngine().plan(
            ViewResource(name="qa", action=Action.DELETE), observed(jenkins_view_xml("qa"))
        )
        assert [(c.subcommand, c.args) for c in plan.changes] == [("delete-view", ["qa"])]
        assert plan.changes[0].input is None

    def test_delete_absent(self):
        plan = ViewDiffEngine().plan(
            ViewResource(name="qa", action=Action.DELETE), ObservedView.absent()
        )
        assert plan.no_change
        assert plan.skipped == ["jenkins_view[qa] does not exist - skipping"]

    def test_append_always_planned(self):
        """Membership is not diffed: append fires on present and absent views."""
        resource = ViewResource(name="qa", job="build-42", action=Action.APPEND)
        for state in (ObservedView.absent(), observed(jenkins_view_xml("qa"))):
            plan = ViewDiffEngine().plan(resource, state)
            assert plan.changes[0].command_line == "add-job-to-view qa build-42"
            assert plan.changes[0].description == "Append build-42 to qa"

    def test_append_without_job(self):
        resource = ViewResource(name="qa", action=Action.APPEND)
        with pytest.raises(ConfigurationError):
            ViewDiffEngine().plan(resource, ObservedView.absent())

    def test_action_override(self):
        """An explicit action wins over the resource's own."""
        plan = ViewDiffEngine().plan(
            ViewResource(name="qa"), observed(jenkins_view_xml("qa")), Action.DELETE
        )
        assert plan.action == Action.DELETE
        assert plan.changes[0].subcommand == "delete-view"

    def test_arguments_escaped(self):
        """Name and job both go through the escape function."""
        engine = ViewDiffEngine(escape=lambda v: f"<{v}>")
        resource = ViewResource(name="my view", job="a job", action=Action.APPEND)
        plan = engine.plan(resource, ObservedView.absent())
        assert plan.changes[0].args == ["<my view>", "<a job>"]

    def test_correct_config_absent(self):
        assert not ViewDiffEngine().correct_config(ViewResource(name="qa"), ObservedView.absent())

    def test_correct_config_uses_documents_match(self, monkeypatch):
        """The config check goes through the shared equality rule."""
        from viewcraft.config_engine import diff

        compared = []

        def fake_match(current, wanted):
            compared.append((current, wanted.findtext("name")))
            return True

        monkeypatch.setattr(diff, "documents_match", fake_match)
        state = observed(jenkins_view_xml("qa-old"))
        assert ViewDiffEngine().correct_config(ViewResource(name="qa"), state)
        assert compared == [(state.document, "qa")]


class TestSummarizePlan:
    """Tests for plan summaries."""

    def test_no_change(self):
        plan = ViewPlan(resource=ViewResource(name="qa"), action=Action.CREATE)
        assert summarize_plan(plan) == "No changes needed - jenkins_view[qa] already matches (create)"

    def test_changes_listed(self):
        plan = ViewPlan(
            resource=ViewResource(name="qa"),
            action=Action.DELETE,
            changes=[PlannedChange("delete-view", ["qa"], description="Delete jenkins_view[qa]")],
        )
        summary = summarize_plan(plan)
        assert "1 total" in summary
        assert "[~] Delete jenkins_view[qa]" in summary
        assert "delete-view qa" in summary


class TestConvergenceEngine:
    """End-to-end passes against an in-memory master."""

    def test_create_absent_view(self):
        """Absent view: create-view then update-view, one load."""
        executor = FakeExecutor()
        result = ConvergenceEngine(executor).converge(ViewResource(name="release-1.0"))

        assert result.updated
        assert [c[0] for c in executor.mutating_calls] == ["create-view", "update-view"]
        assert executor.load_count == 1
        assert result.changes_made == [
            "Create jenkins_view[release-1.0]",
            "Update jenkins_view[release-1.0] config",
        ]
        assert result.commands_executed == ["create-view release-1.0", "update-view release-1.0"]

    def test_second_pass_is_noop(self):
        """Converging again after a successful pass changes nothing."""
        executor = FakeExecutor()
        engine = ConvergenceEngine(executor)
        engine.converge(ViewResource(name="release-1.0"))
        executor.calls.clear()

        result = engine.converge(ViewResource(name="release-1.0"))

        assert not result.updated
        assert executor.mutating_calls == []
        assert executor.load_count == 1

    def test_in_sync_view_untouched(self):
        """A view Jenkins reports with different formatting is in sync."""
        executor = FakeExecutor(views={"release-1.0": jenkins_view_xml("release-1.0", indent="    ")})
        result = ConvergenceEngine(executor).converge(ViewResource(name="release-1.0"))
        assert not result.updated
        assert executor.mutating_calls == []
        assert [e.event for e in result.events] == [EventType.SKIPPED, EventType.SKIPPED]

    def test_drift_corrected(self):
        """A drifted view gets exactly one update-view with the rendered XML."""
        executor = FakeExecutor(views={"release-1.0": jenkins_view_xml("release-1.0-old")})
        result = ConvergenceEngine(executor).converge(ViewResource(name="release-1.0"))

        assert result.updated
        assert len(executor.mutating_calls) == 1
        subcommand, args, data = executor.mutating_calls[0]
        assert (subcommand, args) == ("update-view", ["release-1.0"])
        assert data == render_view_xml("release-1.0")
        assert b"<name>release-1.0</name>" in data

    def test_delete_absent_skips(self):
        executor = FakeExecutor()
        result = ConvergenceEngine(executor).converge(ViewResource(name="qa", action=Action.DELETE))
        assert not result.updated
        assert executor.mutating_calls == []
        assert result.events[0].detail == "jenkins_view[qa] does not exist - skipping"

    def test_delete_present(self):
        executor = FakeExecutor(views={"qa": jenkins_view_xml("qa")})
        result = ConvergenceEngine(executor).converge(ViewResource(name="qa", action=Action.DELETE))
        assert result.updated
        assert executor.mutating_calls == [("delete-view", ["qa"], None)]
        assert "qa" not in executor.views

    def test_append_fires_every_pass(self):
        """Append is not idempotent at this level: each pass adds the job."""
        executor = FakeExecutor(views={"qa": jenkins_view_xml("qa")})
        engine = ConvergenceEngine(executor)
        resource = ViewResource(name="qa", job="build-42", action=Action.APPEND)

        engine.converge(resource)
        engine.converge(resource)

        assert [c[:2] for c in executor.mutating_calls] == [
            ("add-job-to-view", ["qa", "build-42"]),
            ("add-job-to-view", ["qa", "build-42"]),
        ]
        assert executor.load_count == 2

    def test_update_absent_view(self):
        """Update on an absent view fails without mutating anything."""
        executor = FakeExecutor()
        with pytest.raises(ViewDoesNotExist):
            ConvergenceEngine(executor).converge(ViewResource(name="qa", action=Action.UPDATE))
        assert executor.mutating_calls == []

    def test_update_drifted_view(self):
        executor = FakeExecutor(views={"qa": jenkins_view_xml("qa-old")})
        result = ConvergenceEngine(executor).converge(ViewResource(name="qa"), action=Action.UPDATE)
        assert result.action == Action.UPDATE
        assert [c[0] for c in executor.mutating_calls] == ["update-view"]

    def test_dry_run(self):
        """Dry run reports the calls but makes none."""
        executor = FakeExecutor()
        sink = CollectingSink()
        result = ConvergenceEngine(executor, sink=sink, dry_run=True).converge(
            ViewResource(name="release-1.0")
        )

        assert result.dry_run
        assert not result.updated
        assert executor.mutating_calls == []
        assert result.commands_executed == [
            "[DRY-RUN] create-view release-1.0",
            "[DRY-RUN] update-view release-1.0",
        ]
        assert result.changes_made[0] == "[PREVIEW] Create jenkins_view[release-1.0]"
        assert len(sink.of_type(EventType.WOULD_CHANGE)) == 2

    def test_invalid_declaration_before_transport(self):
        """A bad declaration fails before any CLI call."""
        executor = FakeExecutor()
        engine = ConvergenceEngine(executor)
        with pytest.raises(ConfigurationError):
            engine.converge(ViewResource(name=""))
        with pytest.raises(ConfigurationError):
            engine.converge(ViewResource(name="qa", action=Action.APPEND))
        assert executor.calls == []

    def test_undecodable_names_before_transport(self):
        """Names that cannot be sent as UTF-8 never reach the master, for any action."""
        executor = FakeExecutor()
        engine = ConvergenceEngine(executor)
        for resource in (
            ViewResource(name="qa\udcff"),
            ViewResource(name="qa\udcff", action=Action.DELETE),
            ViewResource(name="qa\udcff", job="build-42", action=Action.APPEND),
            ViewResource(name="qa", job="build\udcff", action=Action.APPEND),
        ):
            with pytest.raises(ConfigurationError):
                engine.converge(resource)
        assert executor.calls == []

    def test_transport_failure_aborts_pass(self):
        """A failed call is raised and later calls are not attempted."""
        executor = FakeExecutor(fail={"create-view"})
        sink = CollectingSink()
        with pytest.raises(TransportError) as exc_info:
            ConvergenceEngine(executor, sink=sink).converge(ViewResource(name="qa"))

        assert exc_info.value.subcommand == "create-view"
        assert [c[0] for c in executor.mutating_calls] == ["create-view"]
        failed = sink.of_type(EventType.FAILED)
        assert len(failed) == 1
        assert failed[0].command == "create-view qa"

    def test_get_view_failure_aborts_pass(self):
        executor = FakeExecutor(fail={"get-view"})
        with pytest.raises(TransportError):
            ConvergenceEngine(executor).converge(ViewResource(name="qa"))
        assert executor.mutating_calls == []

    def test_names_escaped_for_transport(self):
        """Names with spaces are quoted by a shell-splitting transport."""
        executor = FakeExecutor()
        ConvergenceEngine(executor).converge(
            ViewResource(name="my view", job="nightly build", action=Action.APPEND)
        )
        assert executor.mutating_calls[0][1] == ["'my view'", "'nightly build'"]

    def test_names_unchanged_for_argv_transport(self):
        executor = FakeExecutor(escape_fn=lambda v: v)
        ConvergenceEngine(executor).converge(
            ViewResource(name="my view", job="nightly build", action=Action.APPEND)
        )
        assert executor.mutating_calls[0][1] == ["my view", "nightly build"]

    def test_event_order(self):
        executor = FakeExecutor()
        result = ConvergenceEngine(executor, sink=discard).converge(ViewResource(name="qa"))
        assert [e.event for e in result.events] == [
            EventType.CHANGING,
            EventType.CHANGED,
            EventType.CHANGING,
            EventType.CHANGED,
        ]
        assert all(e.resource == "jenkins_view[qa]" for e in result.events)

    def test_master_defaults_to_executor(self):
        executor = FakeExecutor(master_id="ci-east")
        result = ConvergenceEngine(executor).converge(ViewResource(name="qa"))
        assert result.resource.master == "ci-east"
        assert result.to_dict()["master"] == "ci-east"

    def test_converge_config(self):
        executor = FakeExecutor()
        result = ConvergenceEngine(executor).converge_config(
            {"name": "qa", "action": "append", "job": "build-42"}
        )
        assert result.action == Action.APPEND
        assert executor.jobs == {"qa": ["build-42"]}

    def test_preview(self):
        executor = FakeExecutor()
        summary = ConvergenceEngine(executor).preview(ViewResource(name="qa"))
        assert "create-view qa" in summary
        assert executor.mutating_calls == []

    def test_observe(self):
        executor = FakeExecutor(views={"qa": jenkins_view_xml("qa")})
        assert ConvergenceEngine(executor).observe("qa").exists

    def test_result_to_dict(self):
        executor = FakeExecutor()
        data = ConvergenceEngine(executor, dry_run=True).converge(ViewResource(name="qa")).to_dict()
        assert data["view"] == "qa"
        assert data["action"] == "create"
        assert data["dry_run"] is True
        assert data["events"][0]["event"] == "would_change"


class TestEventSinks:
    """Tests for event sinks."""

    def _event(self, event_type=EventType.CHANGED):
        return ConvergeEvent(
            event=event_type,
            resource="jenkins_view[qa]",
            action=Action.CREATE,
            detail="Create jenkins_view[qa]",
        )

    def test_logging_sink(self, caplog):
        with caplog.at_level(logging.INFO, logger="viewcraft"):
            LoggingSink()(self._event(EventType.WOULD_CHANGE))
        assert "Would Create jenkins_view[qa]" in caplog.text

    def test_logging_sink_failure_level(self, caplog):
        with caplog.at_level(logging.INFO, logger="viewcraft"):
            LoggingSink()(self._event(EventType.FAILED))
        assert caplog.records[-1].levelno == logging.ERROR

    def test_fan_out(self):
        a, b = CollectingSink(), CollectingSink()
        fan_out(a, b)(self._event())
        assert len(a.events) == len(b.events) == 1

    def test_discard(self):
        assert discard(self._event()) is None
