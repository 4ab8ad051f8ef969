"""Number Call - a shared, spoken board of DRS, Override and Check Date numbers.

Several browsers share one authoritative board; every addition is broadcast
to all of them and announced with speech synthesis on each.
"""

import logging
import os
import subprocess
from logging.handlers import RotatingFileHandler
from pathlib import Path

__version__ = "0.1.0"


def get_git_commit() -> str:
    """Get the short git commit hash, or 'unknown' if not in a git repo."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            text=True,
            check=True,
            timeout=5,
        )
        return result.stdout.strip()
    except (
        subprocess.CalledProcessError,
        FileNotFoundError,
        subprocess.TimeoutExpired,
    ):
        return "unknown"


def get_version_string() -> str:
    """Get version string with git commit for dev builds."""
    return f"{__version__}+{get_git_commit()}"


def _setup_logging(log_dir: Path, console_level: str = "INFO") -> None:
    """Configure logging to both console and rotating file."""
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"numbercall.{os.getpid()}.log"

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # File handler - detailed logging with rotation (10MB, keep 5 backups)
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    # Console handler - less verbose
    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level.upper())
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    logging.info("Logging configured. Log file: %s", log_file.absolute())


def main() -> None:
    """Entry point for the Number Call server."""
    from fastapi.middleware.cors import CORSMiddleware
    from nicegui import app, ui

    from numbercall.board import get_channel
    from numbercall.config import get_settings

    settings = get_settings()
    _setup_logging(settings.log.log_dir, settings.log.console_level)

    import numbercall.pages  # noqa: F401 - registers routes

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_methods=settings.server.cors_methods,
    )

    channel = get_channel()

    @app.on_shutdown
    def shutdown() -> None:
        logging.getLogger(__name__).info(
            "Shutting down with %d numbers on the board (state is not persisted)",
            len(channel.store),
        )

    port = settings.server.port
    print(f"Number Call v{get_version_string()}")
    print(f"Starting application on http://{settings.server.host}:{port}")

    ui.run(
        host=settings.server.host,
        port=port,
        title="Number Call",
        reload=settings.server.reload,
        reconnect_timeout=settings.sync.recovery_window_seconds,
        storage_secret=settings.server.storage_secret.get_secret_value(),
        show=False,
    )


if __name__ in {"__main__", "__mp_main__"}:
    main()
