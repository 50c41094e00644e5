import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from swarm_tasks_ui.config import STATES
from swarm_tasks_ui.storage.task_codec import read_task_file, write_task_file

logger = logging.getLogger(__name__)

TaskRecord = Dict[str, Any]
TaskBoard = Dict[str, List[TaskRecord]]
TaskLocation = Tuple[str, str]


class TaskStoreError(Exception):
    """Base class for task store failures that map to a client error."""


class TaskNotFoundError(TaskStoreError):
    def __init__(self, task_ref: str):
        super().__init__(f"Task not found: {task_ref}")
        self.task_ref = task_ref


class InvalidStateError(TaskStoreError):
    def __init__(self, state: Optional[str]):
        super().__init__(f"Invalid state: {state}")
        self.state = state


@dataclass(frozen=True)
class StoreConfig:
    tasks_dir: Path
    states: Tuple[str, ...] = STATES
    lookup: str = "fragment"


def slugify(title: str) -> str:
    """'Fix Bug' -> 'fix-bug'."""
    return re.sub(r"[\s/\\]+", "-", title.lower())


class FileTaskStore:
    """
    Tasks as markdown files, one directory per state:

        <tasks_dir>/<state>/<id>.md

    The state of a task is the directory it sits in. Nothing here locks or
    writes atomically; two writers on the same file race.
    """

    def __init__(self, config: StoreConfig, clock: Callable[[], float] = time.time):
        self.config = config
        self._clock = clock

    @property
    def states(self) -> Tuple[str, ...]:
        return self.config.states

    def state_dir(self, state: str) -> Path:
        return self.config.tasks_dir / state

    def require_state(self, state: Optional[str]) -> str:
        if not state or state not in self.config.states:
            raise InvalidStateError(state)
        return state

    def _task_files(self, state: str) -> List[Path]:
        state_dir = self.state_dir(state)
        if not state_dir.is_dir():
            return []
        return sorted(
            (p for p in state_dir.iterdir() if p.suffix == ".md" and p.is_file()),
            key=lambda p: p.name,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_tasks(self) -> TaskBoard:
        board: TaskBoard = {}
        for state in self.config.states:
            board[state] = [read_task_file(path) for path in self._task_files(state)]
        return board

    def find_by_fragment(self, fragment: str) -> Optional[TaskLocation]:
        """
        First file whose name contains `fragment`, scanning states in order.

        This is substring matching: "12" finds "1712-fix.md" just as well as
        "12-other.md", whichever state comes first.
        """
        for state in self.config.states:
            for path in self._task_files(state):
                if fragment in path.name:
                    return state, path.name
        return None

    def find_by_id(self, task_id: str) -> Optional[TaskLocation]:
        for state in self.config.states:
            for path in self._task_files(state):
                if path.stem == task_id:
                    return state, path.name
        return None

    def locate(self, task_ref: str) -> Optional[TaskLocation]:
        if self.config.lookup == "exact":
            return self.find_by_id(task_ref)
        return self.find_by_fragment(task_ref)

    def _locate_or_raise(self, task_ref: str) -> TaskLocation:
        location = self.locate(task_ref)
        if location is None:
            raise TaskNotFoundError(task_ref)
        return location

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def move_task(self, task_ref: str, to_state: str) -> TaskLocation:
        self.require_state(to_state)
        from_state, filename = self._locate_or_raise(task_ref)

        src = self.state_dir(from_state) / filename
        dst = self.state_dir(to_state) / filename
        src.rename(dst)
        logger.info("Moved %s: %s -> %s", filename, from_state, to_state)
        return to_state, filename

    def generate_id(self, title: str) -> str:
        millis = round(self._clock() * 1000)
        return f"{millis}-{slugify(title)}"

    def create_task(self, state: str, fields: Mapping[str, Any]) -> TaskRecord:
        self.require_state(state)
        task: TaskRecord = dict(fields)
        task["id"] = self.generate_id(str(fields.get("title") or ""))

        path = write_task_file(self.state_dir(state), task)
        logger.info("Created task %s in %s", task["id"], state)
        task["filename"] = path.name
        return task

    def update_task(self, state: str, task_id: str, fields: Mapping[str, Any]) -> TaskRecord:
        """
        Overwrite <state>/<filename or task_id.md> with `fields`.

        The current location of the task is not looked up: an update naming a
        different state than the one the file lives in leaves the original
        where it is and writes a second copy.
        """
        self.require_state(state)
        task: TaskRecord = dict(fields)
        task["id"] = task_id

        path = write_task_file(self.state_dir(state), task)
        logger.info("Updated task %s in %s", task_id, state)
        task["filename"] = path.name
        return task

    def delete_task(self, task_ref: str) -> TaskLocation:
        state, filename = self._locate_or_raise(task_ref)
        (self.state_dir(state) / filename).unlink()
        logger.info("Deleted %s from %s", filename, state)
        return state, filename
