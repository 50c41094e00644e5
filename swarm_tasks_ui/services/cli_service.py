import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from swarm_tasks_ui.config import STATES

logger = logging.getLogger(__name__)

TaskBoard = Dict[str, List[Dict[str, Any]]]


class ExternalToolError(RuntimeError):
    """The task CLI is missing, failed, or said something we can't use."""


def run_cli_command(
    cmd: List[str],
    cwd: Optional[Path] = None,
    timeout: float = 10.0,
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> subprocess.CompletedProcess:
    """
    Runs a task CLI command and logs what came back.

    Raises ExternalToolError when the executable is missing, times out,
    exits non-zero, or prints an `Error` line on stderr (some versions of
    the tool report failures that way with exit code 0).
    """
    logger.debug("Running %s (cwd=%s)", " ".join(cmd), cwd)
    try:
        p = runner(
            cmd,
            cwd=str(cwd) if cwd else None,
            text=True,
            capture_output=True,
            timeout=timeout,
        )
    except FileNotFoundError as exc:
        raise ExternalToolError(f"{cmd[0]} is not installed") from exc
    except subprocess.TimeoutExpired as exc:
        raise ExternalToolError(f"{' '.join(cmd)} timed out after {timeout}s") from exc

    if p.stdout:
        logger.debug("stdout: %s", p.stdout.strip())
    if p.stderr:
        logger.debug("stderr: %s", p.stderr.strip())

    if p.returncode != 0:
        raise ExternalToolError(
            f"{' '.join(cmd)} exited with {p.returncode}: {(p.stderr or '').strip()}"
        )
    if any(line.strip().startswith("Error") for line in (p.stderr or "").splitlines()):
        raise ExternalToolError(f"{' '.join(cmd)} reported: {p.stderr.strip()}")
    return p


def _translate_task(item: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map the CLI's JSON task shape onto the on-disk record shape.
    """
    task = {k: v for k, v in item.items() if k not in ("state", "status", "tags", "effort", "completed_at")}

    tags = item.get("tags")
    if "category" not in task and isinstance(tags, list) and tags:
        task["category"] = tags[0]
    if "estimated_hours" not in task and item.get("effort") is not None:
        task["estimated_hours"] = item["effort"]
    if "completed_date" not in task and item.get("completed_at"):
        task["completed_date"] = item["completed_at"]

    task.setdefault("description", "")
    if task.get("id") is not None:
        task.setdefault("filename", f"{task['id']}.md")
    return task


def translate_task_list(payload: Any, states: Sequence[str] = STATES) -> TaskBoard:
    """
    Accepts either {"backlog": [...], ...} or a flat list whose items name
    their state. Tasks in states we don't know about are dropped.
    """
    board: TaskBoard = {state: [] for state in states}

    if isinstance(payload, dict):
        pairs: List[Tuple[Any, Any]] = [
            (state, item) for state, items in payload.items() if isinstance(items, list) for item in items
        ]
    elif isinstance(payload, list):
        pairs = [(item.get("state") or item.get("status"), item) for item in payload if isinstance(item, dict)]
    else:
        raise ExternalToolError(f"Unexpected task list payload: {type(payload).__name__}")

    for state, item in pairs:
        if state in board and isinstance(item, dict):
            board[state].append(_translate_task(item))
    return board


class CliTaskSource:
    """
    Reads and moves tasks through the external task CLI.

    Used only as the first attempt; see TaskService for the fallback.
    """

    def __init__(
        self,
        tool: str,
        cwd: Optional[Path] = None,
        states: Sequence[str] = STATES,
        timeout: float = 10.0,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        self.tool = tool
        self.cwd = cwd
        self.states = tuple(states)
        self.timeout = timeout
        self._runner = runner

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        return run_cli_command([self.tool, *args], cwd=self.cwd, timeout=self.timeout, runner=self._runner)

    def list_tasks(self) -> TaskBoard:
        p = self._run("list", "--json")
        try:
            payload = json.loads(p.stdout or "")
        except json.JSONDecodeError as exc:
            raise ExternalToolError(f"{self.tool} list returned invalid JSON: {exc}") from exc
        return translate_task_list(payload, self.states)

    def move_task(self, task_ref: str, to_state: str) -> None:
        self._run("move", task_ref, to_state)
