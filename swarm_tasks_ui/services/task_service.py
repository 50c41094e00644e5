import logging
from typing import Any, Dict, List, Mapping, Optional

from swarm_tasks_ui.config import Settings
from swarm_tasks_ui.services.cli_service import CliTaskSource, ExternalToolError
from swarm_tasks_ui.storage.task_store import FileTaskStore, StoreConfig

logger = logging.getLogger(__name__)


class TaskService:
    """
    What the HTTP layer talks to.

    Two strategies sit behind it: the optional task CLI (`cli`) and the
    filesystem store (`store`). Listing and moving go to the CLI first when
    one is configured; any ExternalToolError drops the call through to the
    store. The caller never sees a CLI failure. Create, update and delete
    always go straight to the store.
    """

    def __init__(self, store: FileTaskStore, cli: Optional[CliTaskSource] = None):
        self.store = store
        self.cli = cli

    @property
    def states(self):
        return self.store.states

    def list_tasks(self) -> Dict[str, List[Dict[str, Any]]]:
        if self.cli is not None:
            try:
                return self.cli.list_tasks()
            except ExternalToolError as exc:
                logger.debug("CLI list failed, reading files instead: %s", exc)
        return self.store.list_tasks()

    def move_task(self, task_ref: str, to_state: str) -> None:
        self.store.require_state(to_state)
        if self.cli is not None:
            try:
                self.cli.move_task(task_ref, to_state)
                return
            except ExternalToolError as exc:
                logger.debug("CLI move failed, renaming file instead: %s", exc)
        self.store.move_task(task_ref, to_state)

    def create_task(self, state: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        return self.store.create_task(state, fields)

    def update_task(self, state: str, task_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        return self.store.update_task(state, task_id, fields)

    def delete_task(self, task_ref: str) -> None:
        self.store.delete_task(task_ref)


def build_task_service(settings: Settings) -> TaskService:
    store = FileTaskStore(
        StoreConfig(tasks_dir=settings.tasks_dir, states=settings.states, lookup=settings.lookup)
    )
    cli = None
    if settings.use_cli:
        cli = CliTaskSource(
            settings.cli_tool,
            cwd=settings.project_root,
            states=settings.states,
            timeout=settings.cli_timeout,
        )
    return TaskService(store, cli)
