import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

STATES: Tuple[str, ...] = ("backlog", "active", "completed", "blocked")
LOOKUP_MODES = ("fragment", "exact")

DEFAULT_PORT = 3001
DEFAULT_UI_PORT = 5173
DEFAULT_CLI_TOOL = "swarm-tasks"
CONFIG_FILENAME = ".swarm_tasks.yml"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _default_ui_home() -> Path:
    # The repo root holds the UI bundle (dist/) and package.json.
    return Path(__file__).resolve().parent.parent


@dataclass(frozen=True)
class Settings:
    """
    Process settings, read once from the environment (+ optional .env).

    TASKS_DIR and PORT are what the launcher hands to the backend child
    process; the VITE_* pair is what the UI proxy / dev server targets.
    """

    tasks_dir: Path
    port: int
    states: Tuple[str, ...]
    lookup: str
    use_cli: bool
    cli_tool: str
    cli_timeout: float
    api_url: str
    ui_home: Path
    log_level: str

    @property
    def project_root(self) -> Path:
        return self.tasks_dir.parent


def load_settings() -> Settings:
    tasks_dir = Path(os.getenv("TASKS_DIR") or "tasks").expanduser().resolve()
    port = _env_int("PORT", DEFAULT_PORT)

    lookup = (os.getenv("SWARM_TASKS_LOOKUP") or "fragment").strip().lower()
    if lookup not in LOOKUP_MODES:
        lookup = "fragment"

    api_port = _env_int("VITE_API_PORT", port)
    api_url = os.getenv("VITE_API_URL") or f"http://localhost:{api_port}"

    ui_home_raw: Optional[str] = os.getenv("SWARM_TASKS_UI_HOME")
    ui_home = Path(ui_home_raw).expanduser() if ui_home_raw else _default_ui_home()

    timeout_raw = os.getenv("SWARM_TASKS_CLI_TIMEOUT") or "10"
    try:
        cli_timeout = float(timeout_raw)
    except ValueError:
        cli_timeout = 10.0

    return Settings(
        tasks_dir=tasks_dir,
        port=port,
        states=STATES,
        lookup=lookup,
        use_cli=_env_bool("SWARM_TASKS_USE_CLI", False),
        cli_tool=os.getenv("SWARM_TASKS_CLI") or DEFAULT_CLI_TOOL,
        cli_timeout=cli_timeout,
        api_url=api_url.rstrip("/"),
        ui_home=ui_home,
        log_level=(os.getenv("SWARM_TASKS_LOG_LEVEL") or "INFO").upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
