from pathlib import Path

import pytest

from swarm_tasks_ui.config import Settings
from swarm_tasks_ui.services.cli_service import CliTaskSource, ExternalToolError
from swarm_tasks_ui.services.task_service import TaskService, build_task_service
from swarm_tasks_ui.storage.task_store import InvalidStateError, TaskNotFoundError


class FakeCli:
    def __init__(self, board=None, fail=False):
        self.board = board or {}
        self.fail = fail
        self.moves = []

    def list_tasks(self):
        if self.fail:
            raise ExternalToolError("swarm-tasks is not installed")
        return self.board

    def move_task(self, task_ref, to_state):
        if self.fail:
            raise ExternalToolError("swarm-tasks is not installed")
        self.moves.append((task_ref, to_state))


def test_without_cli_uses_store(store, write_task):
    write_task("active", "t1.md", "---\nid: t1\n---\n")
    service = TaskService(store)
    assert [t["id"] for t in service.list_tasks()["active"]] == ["t1"]


def test_cli_result_wins_when_it_works(store, tasks_dir, write_task):
    write_task("backlog", "t1.md", "---\nid: t1\n---\n")
    cli = FakeCli(board={"backlog": [{"id": "from-cli"}]})
    service = TaskService(store, cli)

    assert service.list_tasks() == {"backlog": [{"id": "from-cli"}]}

    service.move_task("t1", "active")
    assert cli.moves == [("t1", "active")]
    assert (tasks_dir / "backlog" / "t1.md").exists()


def test_cli_failure_falls_back_to_files(store, tasks_dir, write_task):
    write_task("backlog", "t1.md", "---\nid: t1\n---\n")
    service = TaskService(store, FakeCli(fail=True))

    assert [t["id"] for t in service.list_tasks()["backlog"]] == ["t1"]

    service.move_task("t1", "completed")
    assert (tasks_dir / "completed" / "t1.md").exists()


def test_fallback_still_reports_not_found(store):
    service = TaskService(store, FakeCli(fail=True))
    with pytest.raises(TaskNotFoundError):
        service.move_task("ghost", "active")


def test_move_validates_state_before_cli(store):
    cli = FakeCli()
    service = TaskService(store, cli)
    with pytest.raises(InvalidStateError):
        service.move_task("t1", "done")
    assert cli.moves == []


def _settings(tasks_dir: Path, use_cli: bool) -> Settings:
    return Settings(
        tasks_dir=tasks_dir,
        port=3001,
        states=("backlog", "active", "completed", "blocked"),
        lookup="exact",
        use_cli=use_cli,
        cli_tool="my-tasks",
        cli_timeout=5.0,
        api_url="http://localhost:3001",
        ui_home=tasks_dir.parent,
        log_level="INFO",
    )


def test_build_task_service_wires_strategies(tasks_dir):
    plain = build_task_service(_settings(tasks_dir, use_cli=False))
    assert plain.cli is None
    assert plain.store.config.tasks_dir == tasks_dir
    assert plain.store.config.lookup == "exact"

    with_cli = build_task_service(_settings(tasks_dir, use_cli=True))
    assert isinstance(with_cli.cli, CliTaskSource)
    assert with_cli.cli.tool == "my-tasks"
    assert with_cli.cli.cwd == tasks_dir.parent
