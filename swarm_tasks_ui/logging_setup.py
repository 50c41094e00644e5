import logging
import sys


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep our own logs, but only let third-party loggers (uvicorn access
    lines, httpx request lines) through at WARNING and above.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith("swarm_tasks_ui"):
            return True
        if record.name.startswith("uvicorn.error"):
            return record.levelno >= logging.INFO
        return record.levelno >= logging.WARNING


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger with a single stderr handler.

    Call this once, early, from an entry point (backend serve() or the
    launcher). Library code only ever calls logging.getLogger(__name__).
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(fmt)
    handler.addFilter(_ConsoleNoiseFilter())
    root.addHandler(handler)

    logging.captureWarnings(True)
