"""
swarm-tasks-ui: start the task API and the board UI together.

    swarm-tasks-ui [-p PORT] [-u UI_PORT] [--no-open] [-d DIR] [--use-cli] [--dev]

The API runs as a child process (python -m swarm_tasks_ui.main) with
TASKS_DIR and PORT in its environment. The UI is either the built bundle
in <ui home>/dist, served here with /api proxied to the child, or, when no
bundle exists, the Vite dev server started with `npm run dev`.
"""

import argparse
import logging
import os
import shutil
import subprocess
import sys
import threading
import time
import webbrowser
from pathlib import Path
from typing import Dict, List, Optional

from swarm_tasks_ui.config import DEFAULT_PORT, DEFAULT_UI_PORT, get_settings
from swarm_tasks_ui.logging_setup import setup_logging
from swarm_tasks_ui.services.bootstrap import load_project_config, prepare_tasks_dir
from swarm_tasks_ui.services.ui_server import UiBundleMissing, run_ui_server

logger = logging.getLogger("swarm_tasks_ui.launcher")

BACKEND_STARTUP_DELAY = 1.0
BROWSER_OPEN_DELAY = 1.0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="swarm-tasks-ui", description="A kanban UI for swarm_tasks")
    parser.add_argument("-p", "--port", type=int, default=DEFAULT_PORT, help="server port")
    parser.add_argument("-u", "--ui-port", type=int, default=DEFAULT_UI_PORT, help="UI port")
    parser.add_argument("--no-open", dest="open", action="store_false", help="do not open browser automatically")
    parser.add_argument("-d", "--dir", default="./tasks", help="tasks directory")
    parser.add_argument("--use-cli", action="store_true", help="try the swarm-tasks CLI before touching files")
    parser.add_argument("--dev", action="store_true", help="always use the Vite dev server")
    return parser


def backend_env(tasks_dir: Path, port: int, use_cli: bool, base: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    env = dict(os.environ if base is None else base)
    env["TASKS_DIR"] = str(tasks_dir)
    env["PORT"] = str(port)
    if use_cli:
        env["SWARM_TASKS_USE_CLI"] = "1"
    return env


def dev_server_env(port: int, base: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    env = dict(os.environ if base is None else base)
    env["VITE_API_PORT"] = str(port)
    env["VITE_API_URL"] = f"http://localhost:{port}"
    return env


def start_backend(tasks_dir: Path, port: int, use_cli: bool) -> subprocess.Popen:
    cmd = [sys.executable, "-m", "swarm_tasks_ui.main"]
    logger.info("Starting backend server on port %s...", port)
    return subprocess.Popen(cmd, env=backend_env(tasks_dir, port, use_cli))


def dev_server_command(ui_home: Path, ui_port: int) -> Optional[List[str]]:
    """`npm run dev` in ui_home, or None if there is nothing to run."""
    npm = shutil.which("npm")
    if npm is None or not (ui_home / "package.json").is_file():
        return None
    return [npm, "run", "dev", "--", "--port", str(ui_port)]


def _stop(proc: Optional[subprocess.Popen], name: str) -> None:
    if proc is None or proc.poll() is not None:
        return
    logger.debug("Stopping %s (pid=%s)", name, proc.pid)
    proc.terminate()
    try:
        proc.wait(timeout=5)
    except subprocess.TimeoutExpired:
        proc.kill()


def _open_browser_later(url: str) -> None:
    timer = threading.Timer(BROWSER_OPEN_DELAY, webbrowser.open, args=(url,))
    timer.daemon = True
    timer.start()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level)

    logger.info("Starting swarm-tasks-ui...")
    try:
        tasks_dir = prepare_tasks_dir(args.dir)
    except NotADirectoryError as exc:
        logger.error("Error: %s", exc)
        return 1
    project = load_project_config(tasks_dir)
    logger.info("Using tasks directory: %s (states: %s)", tasks_dir, ", ".join(project.get("states", [])))

    backend = start_backend(tasks_dir, args.port, args.use_cli)
    dev_server: Optional[subprocess.Popen] = None
    ui_url = f"http://localhost:{args.ui_port}"
    api_url = f"http://localhost:{args.port}"

    try:
        time.sleep(BACKEND_STARTUP_DELAY)
        if backend.poll() is not None:
            logger.error("Failed to start server (exit code %s)", backend.returncode)
            return 1

        dist_dir = settings.ui_home / "dist"
        use_bundle = not args.dev and (dist_dir / "index.html").is_file()

        if not use_bundle:
            cmd = dev_server_command(settings.ui_home, args.ui_port)
            if cmd is None:
                logger.error('Error: UI not built. Please run "npm run build" first.')
                return 1
            logger.info("Starting Vite dev server on port %s...", args.ui_port)
            dev_server = subprocess.Popen(cmd, cwd=str(settings.ui_home), env=dev_server_env(args.port))

        logger.info("swarm-tasks-ui is ready! Backend API: %s  UI: %s  (Ctrl+C to stop)", api_url, ui_url)
        if args.open:
            _open_browser_later(ui_url)

        if use_bundle:
            run_ui_server(dist_dir, api_url, args.ui_port)
        else:
            dev_server.wait()
    except UiBundleMissing as exc:
        logger.error("Error: %s", exc)
        return 1
    except KeyboardInterrupt:
        pass
    finally:
        logger.info("Shutting down...")
        _stop(dev_server, "dev server")
        _stop(backend, "backend")

    return 0


if __name__ == "__main__":
    sys.exit(main())
