from pathlib import Path
from typing import Callable, Iterator

import pytest
from fastapi.testclient import TestClient

from swarm_tasks_ui.config import STATES
from swarm_tasks_ui.main import app, get_task_service
from swarm_tasks_ui.services.task_service import TaskService
from swarm_tasks_ui.storage.task_store import FileTaskStore, StoreConfig


class FakeClock:
    """Deterministic clock for id generation; advance() moves it 1 ms."""

    def __init__(self, start: float = 1700000000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float = 0.001) -> None:
        self.now += seconds


@pytest.fixture()
def tasks_dir(tmp_path: Path) -> Path:
    root = tmp_path / "tasks"
    for state in STATES:
        (root / state).mkdir(parents=True)
    return root


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(tasks_dir: Path, clock: FakeClock) -> FileTaskStore:
    return FileTaskStore(StoreConfig(tasks_dir=tasks_dir), clock=clock)


@pytest.fixture()
def write_task(tasks_dir: Path) -> Callable[..., Path]:
    """write_task("active", "t1.md", "---\\nid: t1\\n---\\n\\nBody")"""

    def _write(state: str, filename: str, content: str) -> Path:
        path = tasks_dir / state / filename
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def client(store: FileTaskStore) -> Iterator[TestClient]:
    service = TaskService(store)
    app.dependency_overrides[get_task_service] = lambda: service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
