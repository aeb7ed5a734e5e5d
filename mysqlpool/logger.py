"""Two-channel logger writing init and action messages to files and stdout."""

from __future__ import annotations

import logging
import os
import sys

_FORMAT = "%(asctime)s %(message)s"
_DATE_FORMAT = "%Y/%m/%d %H:%M:%S"


def format_messages(is_error: bool, *messages: str) -> list[str]:
    """Lay out a message and its details as a small tree of lines."""
    if not messages:
        return []
    head, *rest = messages
    lines = [f"[ERROR] {head}" if is_error else head]
    if rest:
        lines.extend(f"├── {message}" for message in rest[:-1])
        lines.append(f"└── {rest[-1]}")
    return lines


def _build_logger(name: str, file_path: str) -> logging.Logger:
    try:
        file_handler = logging.FileHandler(file_path, mode="a", encoding="utf-8")
    except OSError as exc:
        raise OSError(f"failed to open {os.path.basename(file_path)}: {exc}") from exc
    logger = logging.Logger(name, level=logging.INFO)
    formatter = logging.Formatter(_FORMAT, _DATE_FORMAT)
    for handler in (file_handler, logging.StreamHandler(sys.stdout)):
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


class Logger:
    """Writes to ``init.log`` and ``action.log`` under a directory, echoing to stdout."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = os.fspath(path)
        try:
            os.makedirs(self.path, mode=0o755, exist_ok=True)
        except OSError as exc:
            raise OSError(f"failed to create log directory: {exc}") from exc
        self.init_logger = _build_logger(
            f"mysqlpool.init:{self.path}", os.path.join(self.path, "init.log")
        )
        self.action_logger = _build_logger(
            f"mysqlpool.action:{self.path}", os.path.join(self.path, "action.log")
        )

    @staticmethod
    def _write(target: logging.Logger, is_error: bool, messages: tuple[str, ...]) -> None:
        for line in format_messages(is_error, *messages):
            target.info(line)

    def init(self, is_error: bool, *messages: str) -> None:
        """Log to the init channel."""
        self._write(self.init_logger, is_error, messages)

    def action(self, is_error: bool, *messages: str) -> None:
        """Log to the action channel."""
        self._write(self.action_logger, is_error, messages)

    def close(self) -> None:
        """Release the log files."""
        for target in (self.init_logger, self.action_logger):
            for handler in list(target.handlers):
                handler.close()
                target.removeHandler(handler)