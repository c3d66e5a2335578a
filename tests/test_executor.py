import pytest

from tfpr.commands import Command
from tfpr.config_loader import BridgeConfig, TerraformConfig
from tfpr.executor import ExecutionContext, Executor, resolve_directory
from tfpr.state import RunState

from conftest import FakeTerraform


OPERATION_ARGS = {
    Command.PLAN: ["plan", "-no-color"],
    Command.APPLY: ["apply", "-no-color", "-auto-approve"],
    Command.PLAN_DESTROY: ["plan", "-destroy", "-no-color"],
    Command.APPLY_DESTROY: ["apply", "-destroy", "-no-color", "-auto-approve"],
}

HINT_HEADER = "Comment one of the following to continue:"


@pytest.mark.parametrize("command", list(Command))
def test_exactly_one_operation_runs(command, fake_tf, make_executor):
    report = make_executor(fake_tf).execute_terraform(command, "infra", "dev")

    assert fake_tf.operation_calls() == [OPERATION_ARGS[command]]
    assert report.success
    assert report.title == f"`{command.value}` succeeded"


def test_stage_order(fake_tf, make_executor):
    make_executor(fake_tf).execute_terraform(Command.PLAN, "", "dev")

    assert fake_tf.subcommands == [
        ["init", "-input=false"],
        ["workspace", "select", "dev"],
        ["workspace", "new", "dev"],
        ["workspace", "show"],
        ["plan", "-no-color"],
    ]


@pytest.mark.parametrize("command", list(Command))
def test_init_failure_short_circuits(command, make_executor):
    tf = FakeTerraform(overrides={"init": {"returncode": 1, "stderr": "Error: backend unreachable"}})

    report = make_executor(tf).execute_terraform(command, "infra", "dev")

    assert tf.subcommands == [["init", "-input=false"]]
    assert report.title == "`init` failed"
    assert not report.success
    assert "backend unreachable" in report.body
    assert HINT_HEADER not in report.body


def test_init_stderr_alone_is_failure(make_executor):
    tf = FakeTerraform(overrides={"init": {"returncode": 0, "stderr": "Warning: something odd"}})

    report = make_executor(tf).execute_terraform(Command.PLAN)

    assert report.title == "`init` failed"
    assert tf.operation_calls() == []


def test_init_timeout_is_failure(make_executor):
    tf = FakeTerraform(overrides={"init": {"timed_out": True, "stderr": "Timed out after 600s"}})

    report = make_executor(tf).execute_terraform(Command.APPLY)

    assert not report.success
    assert "Timed out after 600s" in report.body


def test_existing_workspace_is_selected_not_created(make_executor):
    tf = FakeTerraform(workspaces={"default", "staging"})

    make_executor(tf).execute_terraform(Command.PLAN, "", "staging")

    assert ["workspace", "new", "staging"] not in tf.subcommands
    assert tf.selected == "staging"


def test_workspace_failure_strict_stops_before_operation(make_executor):
    tf = FakeTerraform(overrides={
        "workspace new": {"returncode": 1, "stderr": "Error: state locked"},
    })

    report = make_executor(tf, strict_workspace=True).execute_terraform(Command.APPLY, "", "prod")

    assert tf.operation_calls() == []
    assert report.title == "`workspace` failed"
    assert "state locked" in report.body
    assert not report.success


def test_workspace_failure_non_strict_still_runs_operation(make_executor):
    tf = FakeTerraform(overrides={
        "workspace new": {"returncode": 1, "stderr": "Error: state locked"},
    })

    report = make_executor(tf, strict_workspace=False).execute_terraform(Command.PLAN, "", "prod")

    assert tf.operation_calls() == [["plan", "-no-color"]]
    assert report.success


def test_workspace_mismatch_after_select_fails(make_executor):
    tf = FakeTerraform(overrides={"workspace show": {"returncode": 0, "stdout": "default\n"}})

    report = make_executor(tf).execute_terraform(Command.PLAN, "", "qa")

    assert report.title == "`workspace` failed"
    assert tf.operation_calls() == []


@pytest.mark.parametrize("command", [Command.PLAN, Command.PLAN_DESTROY])
def test_plan_family_reports_hints_on_failure(command, make_executor):
    tf = FakeTerraform(overrides={"plan": {"returncode": 1, "stderr": "Error: invalid reference"}})

    report = make_executor(tf).execute_terraform(command, "net", "qa")

    assert report.title == f"`{command.value}` failed"
    assert HINT_HEADER in report.body
    assert "invalid reference" in report.body


@pytest.mark.parametrize("command", [Command.PLAN, Command.PLAN_DESTROY])
def test_plan_family_reports_hints_on_success(command, fake_tf, make_executor):
    report = make_executor(fake_tf).execute_terraform(command, "net", "qa")

    assert HINT_HEADER in report.body


@pytest.mark.parametrize("command", [Command.APPLY, Command.APPLY_DESTROY])
def test_apply_family_failure_yields_single_failure_report(command, make_executor, event_bus):
    done = []
    event_bus.subscribe(lambda e: done.append(e) if e.payload.get("to") == "done" else None)
    tf = FakeTerraform(overrides={"apply": {"returncode": 1, "stderr": "Error: quota exceeded"}})
    executor = make_executor(tf)

    report = executor.execute_terraform(command, "", "dev")

    assert len(done) == 1
    assert report.title == f"`{command.value}` failed"
    assert not report.success
    assert HINT_HEADER not in report.body
    assert executor.last_run.succeeded is False


@pytest.mark.parametrize("command", [Command.APPLY, Command.APPLY_DESTROY])
def test_apply_family_success_has_no_hints(command, fake_tf, make_executor):
    report = make_executor(fake_tf).execute_terraform(command, "net", "qa")

    assert HINT_HEADER not in report.body
    assert "<h6>Directory: net</h6>" in report.body
    assert "<h6>Workspace: qa</h6>" in report.body


def test_unrecognized_command_is_a_noop(fake_tf, make_executor):
    assert make_executor(fake_tf).execute_terraform("refresh") is None
    assert fake_tf.calls == []


def test_directory_scopes_every_call(fake_tf, make_executor):
    make_executor(fake_tf).execute_terraform(Command.PLAN, "infra/network", "dev")

    assert all(argv[1] == "-chdir=infra/network" for argv in fake_tf.calls)


def test_current_directory_has_no_chdir(fake_tf, make_executor):
    make_executor(fake_tf).execute_terraform(Command.PLAN, "", "dev")

    assert not any(a.startswith("-chdir") for argv in fake_tf.calls for a in argv)


def test_state_transitions_are_emitted(fake_tf, make_executor, event_bus):
    states = []
    event_bus.subscribe(lambda e: states.append(e.payload["to"]) if e.event_type == "state_changed" else None)

    make_executor(fake_tf).execute_terraform(Command.PLAN)

    assert states == ["initializing", "selecting_context", "running", "done"]


def test_init_failure_transitions_straight_to_done(make_executor, event_bus):
    states = []
    event_bus.subscribe(lambda e: states.append(e.payload["to"]) if e.event_type == "state_changed" else None)
    tf = FakeTerraform(overrides={"init": {"returncode": 1, "stderr": "boom"}})

    make_executor(tf).execute_terraform(Command.PLAN)

    assert states == ["initializing", "done"]


def test_operation_runner_records_into_the_run_it_is_given(fake_tf, make_executor):
    executor = make_executor(fake_tf)
    executor.execute_terraform(Command.APPLY, "infra", "dev")
    previous = executor.last_run
    recorded = len(previous.stages)

    ctx = ExecutionContext(directory="infra", workspace="dev")
    run = RunState(command=Command.PLAN, directory=ctx.directory, workspace=ctx.workspace)
    executor.plan(run, ctx)

    assert len(previous.stages) == recorded
    assert [s.stage for s in run.stages] == ["plan"]
    assert executor.last_run is previous


def test_events_carry_the_command(fake_tf, make_executor, event_bus):
    events = []
    event_bus.subscribe(events.append)

    make_executor(fake_tf).execute_terraform(Command.PLAN_DESTROY)

    assert events
    assert {e.command for e in events} == {"plan-destroy"}


# ---------------------------------------------------------------------------
# Context resolution
# ---------------------------------------------------------------------------

def test_resolve_directory_precedence():
    assert resolve_directory("a", "b") == "b"
    assert resolve_directory("a", "") == "a"
    assert resolve_directory("", "") == "."


def test_resolve_context_uses_config(fake_tf):
    config = BridgeConfig(terraform=TerraformConfig(default_dir="b", default_workspace="base"))
    executor = Executor(config, runner=fake_tf)

    ctx = executor.resolve_context("a", "")

    assert ctx == ExecutionContext(directory="b", workspace="base")
    assert executor.resolve_context("a", "staging").workspace == "staging"


def test_context_workspace_setter_returns_copy():
    ctx = ExecutionContext()
    changed = ctx.with_workspace("prod")

    assert ctx.workspace == "dev"
    assert changed.workspace == "prod"
    assert changed.directory == "."
