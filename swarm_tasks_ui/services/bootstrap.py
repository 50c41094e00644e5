import logging
from pathlib import Path
from typing import Any, Dict, Sequence, Union

import yaml

from swarm_tasks_ui.config import CONFIG_FILENAME, STATES

logger = logging.getLogger(__name__)


def config_path_for(tasks_dir: Path) -> Path:
    """The sidecar config lives next to the tasks directory, not inside it."""
    return tasks_dir.parent / CONFIG_FILENAME


def write_default_config(tasks_dir: Path, states: Sequence[str] = STATES) -> Path:
    path = config_path_for(tasks_dir)
    data = {"tasks_dir": tasks_dir.name, "states": list(states)}
    with path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False, default_flow_style=False)
    return path


def load_project_config(tasks_dir: Path) -> Dict[str, Any]:
    path = config_path_for(tasks_dir)
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


def prepare_tasks_dir(tasks_dir: Union[str, Path], states: Sequence[str] = STATES) -> Path:
    """
    Make sure <tasks_dir>/<state>/ exists for every state, and that the
    parent directory holds a .swarm_tasks.yml.

    Raises NotADirectoryError if the path exists but is a file.
    """
    tasks_dir = Path(tasks_dir).expanduser().resolve()

    if tasks_dir.exists() and not tasks_dir.is_dir():
        raise NotADirectoryError(f"{tasks_dir} is not a directory")

    if not tasks_dir.exists():
        logger.warning("Tasks directory %s not found, creating it", tasks_dir)

    for state in states:
        (tasks_dir / state).mkdir(parents=True, exist_ok=True)

    if not config_path_for(tasks_dir).exists():
        logger.warning("%s not found in %s, writing defaults", CONFIG_FILENAME, tasks_dir.parent)
        write_default_config(tasks_dir, states)

    return tasks_dir
