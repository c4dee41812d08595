"""
structlog setup for the practice engine.

Every event goes to the console and to a file for the current process under
``settings.log_dir``. Debug mode renders colored key/value lines; otherwise
each event is one JSON object, which is what the file holds in production.
Request-scoped values (request_id, session_id) ride along via contextvars.
"""

import logging
from contextlib import suppress
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import structlog
from structlog.typing import Processor

from interview_practice.core.config import settings

LOG_FILE_PREFIX = "practice_"


def _cull_old_logs(logs_dir: Path, keep: int) -> None:
    """Remove all but the ``keep`` newest process log files."""
    by_age = sorted(
        logs_dir.glob(f"{LOG_FILE_PREFIX}*.log"),
        key=lambda p: p.stat().st_mtime,
    )
    stale = by_age[: len(by_age) - keep] if keep > 0 else by_age
    for path in stale:
        with suppress(OSError):
            path.unlink()


def _processors(debug: bool) -> List[Processor]:
    chain: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
    ]
    if debug:
        return chain + [structlog.dev.ConsoleRenderer(colors=True)]
    return chain + [
        structlog.processors.dict_tracebacks,
        structlog.processors.JSONRenderer(),
    ]


def _install_handlers(log_file: Path, level: int) -> None:
    root = logging.getLogger()
    # Reconfiguring (tests, reloads) must not stack handlers
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)

    formatter = logging.Formatter("%(message)s")
    for handler in (logging.StreamHandler(), logging.FileHandler(log_file, mode="w")):
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)


def configure_logging(
    log_files_to_keep: Optional[int] = None,
    logs_dir: Optional[Path] = None,
    level: Optional[str] = None,
) -> Path:
    """Configure structlog and the root logger. Call once at startup.

    Arguments default to ``settings.log_files_to_keep``, ``settings.log_dir``
    and ``settings.log_level``.

    Returns:
        Path of this process's log file
    """
    keep = settings.log_files_to_keep if log_files_to_keep is None else log_files_to_keep
    logs_dir = Path(logs_dir or settings.log_dir)
    numeric_level = logging.getLevelName((level or settings.log_level).upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logs_dir.mkdir(parents=True, exist_ok=True)
    # The file about to be created counts towards the limit
    _cull_old_logs(logs_dir, keep=keep - 1)
    log_file = logs_dir / f"{LOG_FILE_PREFIX}{datetime.now():%Y%m%d_%H%M%S}.log"

    _install_handlers(log_file, numeric_level)
    structlog.configure(
        processors=_processors(settings.debug),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    return log_file


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)


def bind_context(**kwargs) -> None:
    """Attach key/values to every event logged from the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
