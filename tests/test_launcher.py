from dataclasses import replace
from pathlib import Path

import pytest

from swarm_tasks_ui import launcher
from swarm_tasks_ui.config import load_settings


class FakeProc:
    def __init__(self, returncode=None):
        self.returncode = returncode
        self.pid = 4242
        self.terminated = False

    def poll(self):
        return self.returncode

    def terminate(self):
        self.terminated = True
        self.returncode = -15

    def wait(self, timeout=None):
        return self.returncode

    def kill(self):
        self.returncode = -9


@pytest.fixture()
def ui_home(tmp_path: Path) -> Path:
    home = tmp_path / "ui"
    (home / "dist").mkdir(parents=True)
    (home / "dist" / "index.html").write_text("<html><head></head></html>", encoding="utf-8")
    return home


@pytest.fixture()
def patched(monkeypatch, ui_home):
    calls = {"backend": [], "ui": [], "browser": []}
    backend = FakeProc()

    def fake_start_backend(tasks_dir, port, use_cli):
        calls["backend"].append((tasks_dir, port, use_cli))
        return backend

    monkeypatch.setattr(launcher, "setup_logging", lambda level="INFO": None)
    monkeypatch.setattr(launcher, "get_settings", lambda: replace(load_settings(), ui_home=ui_home))
    monkeypatch.setattr(launcher, "BACKEND_STARTUP_DELAY", 0)
    monkeypatch.setattr(launcher, "start_backend", fake_start_backend)
    monkeypatch.setattr(launcher, "run_ui_server", lambda *args: calls["ui"].append(args))
    monkeypatch.setattr(launcher, "_open_browser_later", lambda url: calls["browser"].append(url))
    calls["backend_proc"] = backend
    return calls


def test_parser_defaults():
    args = launcher.build_parser().parse_args([])
    assert (args.port, args.ui_port, args.open, args.dir) == (3001, 5173, True, "./tasks")
    assert args.use_cli is False


def test_parser_flags():
    args = launcher.build_parser().parse_args(["-p", "4000", "-u", "6000", "--no-open", "-d", "work", "--use-cli"])
    assert (args.port, args.ui_port, args.open, args.dir, args.use_cli) == (4000, 6000, False, "work", True)


def test_backend_env():
    env = launcher.backend_env(Path("/data/tasks"), 4000, use_cli=True, base={"HOME": "/root"})
    assert env == {"HOME": "/root", "TASKS_DIR": "/data/tasks", "PORT": "4000", "SWARM_TASKS_USE_CLI": "1"}


def test_dev_server_env():
    env = launcher.dev_server_env(4000, base={})
    assert env == {"VITE_API_PORT": "4000", "VITE_API_URL": "http://localhost:4000"}


def test_main_serves_bundle_and_stops_backend(tmp_path, ui_home, patched):
    code = launcher.main(["-d", str(tmp_path / "tasks"), "-p", "4000", "-u", "6000"])

    assert code == 0
    tasks_dir = (tmp_path / "tasks").resolve()
    assert patched["backend"] == [(tasks_dir, 4000, False)]
    assert patched["ui"] == [(ui_home / "dist", "http://localhost:4000", 6000)]
    assert patched["browser"] == ["http://localhost:6000"]
    assert patched["backend_proc"].terminated
    assert (tasks_dir / "backlog").is_dir()
    assert (tmp_path / ".swarm_tasks.yml").exists()


def test_main_no_open(tmp_path, patched):
    launcher.main(["-d", str(tmp_path / "tasks"), "--no-open"])
    assert patched["browser"] == []


def test_main_without_bundle_or_dev_server_fails(tmp_path, ui_home, patched, monkeypatch):
    (ui_home / "dist" / "index.html").unlink()
    monkeypatch.setattr(launcher, "dev_server_command", lambda home, port: None)

    assert launcher.main(["-d", str(tmp_path / "tasks")]) == 1
    assert patched["ui"] == []
    assert patched["backend_proc"].terminated


def test_main_rejects_file_as_tasks_dir(tmp_path, patched):
    target = tmp_path / "tasks"
    target.write_text("not a dir", encoding="utf-8")

    assert launcher.main(["-d", str(target)]) == 1
    assert patched["backend"] == []


def test_main_backend_died(tmp_path, patched):
    patched["backend_proc"].returncode = 1
    assert launcher.main(["-d", str(tmp_path / "tasks")]) == 1
    assert patched["ui"] == []


def test_dev_server_command_needs_package_json(tmp_path, monkeypatch):
    monkeypatch.setattr(launcher.shutil, "which", lambda name: "/usr/bin/npm")
    assert launcher.dev_server_command(tmp_path, 5173) is None

    (tmp_path / "package.json").write_text("{}", encoding="utf-8")
    assert launcher.dev_server_command(tmp_path, 5173) == ["/usr/bin/npm", "run", "dev", "--", "--port", "5173"]
