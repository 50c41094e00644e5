import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List

import yaml

logger = logging.getLogger(__name__)

FRONTMATTER_DELIMITER = "---"

# Only these keys are written back; anything else in a hand-edited file is
# dropped on the next write.
FRONTMATTER_FIELDS = ("id", "title", "priority", "category", "estimated_hours")


def _is_delimiter(line: str) -> bool:
    return line.rstrip("\r") == FRONTMATTER_DELIMITER


def _jsonable(value: Any) -> Any:
    # PyYAML turns bare 2024-01-31 into a date; records go out as JSON.
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def _load_frontmatter(block: str) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        logger.debug("Ignoring malformed frontmatter: %s", exc)
        return {}
    if not isinstance(data, dict):
        return {}
    return {str(k): _jsonable(v) for k, v in data.items()}


def parse_task(content: str) -> Dict[str, Any]:
    """
    Split a task file into frontmatter fields and description.

    The frontmatter block only counts when the very first line is `---`
    and a later line closes it with `---`. Otherwise the whole content is
    the description.
    """
    lines: List[str] = content.split("\n")

    frontmatter: Dict[str, Any] = {}
    body_lines = lines

    if lines and _is_delimiter(lines[0]):
        for i in range(1, len(lines)):
            if _is_delimiter(lines[i]):
                frontmatter = _load_frontmatter("\n".join(lines[1:i]))
                body_lines = lines[i + 1:]
                break

    task = dict(frontmatter)
    task["description"] = "\n".join(body_lines).strip()
    return task


def read_task_file(path: Path) -> Dict[str, Any]:
    task = parse_task(path.read_text(encoding="utf-8"))
    task["filename"] = path.name
    return task


def task_filename(task: Dict[str, Any]) -> str:
    return task.get("filename") or f"{task['id']}.md"


def render_task(task: Dict[str, Any]) -> str:
    """
    Serialize a task record back to markdown with YAML frontmatter.
    """
    fields: Dict[str, Any] = {}
    for key in FRONTMATTER_FIELDS:
        value = task.get(key)
        if value is not None:
            fields[key] = value
    if task.get("completed_date"):
        fields["completed_date"] = task["completed_date"]

    frontmatter = yaml.safe_dump(
        fields,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )
    description = task.get("description") or ""
    return f"{FRONTMATTER_DELIMITER}\n{frontmatter}{FRONTMATTER_DELIMITER}\n\n{description}"


def write_task_file(state_dir: Path, task: Dict[str, Any]) -> Path:
    path = state_dir / task_filename(task)
    with path.open("w", encoding="utf-8") as f:
        f.write(render_task(task))
    return path
