"""
Centralized logging for the coursebooks store.

`LoggerManager` hands out one configured `logging.Logger` per name, each with a
colored console handler and a file handler (plain text or JSON lines).
`JsonLogFormatter` renders structured file logs; context passed through
`extra={"extra_data": {...}}` is merged into the JSON record.
"""

import os
import sys
import logging
import json
from typing import Optional

from colorlog import ColoredFormatter


class LoggerManager:
    """
    Factory for singleton `logging.Logger` instances.

    Loggers are cached by name (plus `run_id` when given), so repeated calls
    never attach duplicate handlers. Every logger writes to stderr and to a
    file under the log directory, and does not propagate to the root logger.

    Defaults for level and directory can be set once per process through
    `configure()` (the CLI does this from settings.yaml); the environment
    variable `COURSEBOOKS_LOG_DIR` overrides the directory.
    """

    _loggers = {}
    _default_log_dir = os.environ.get("COURSEBOOKS_LOG_DIR", "logs")
    _default_level = "INFO"

    @classmethod
    def configure(cls, level: Optional[str] = None, log_dir: Optional[str] = None) -> None:
        """Set process-wide defaults and re-level loggers created so far."""
        if level:
            cls._default_level = level.upper()
            for logger in cls._loggers.values():
                logger.setLevel(cls._default_level)
                for handler in logger.handlers:
                    handler.setLevel(cls._default_level)
        if log_dir:
            cls._default_log_dir = log_dir

    @classmethod
    def get_logger(
        cls,
        name: str,
        log_file: Optional[str] = None,
        level: Optional[str] = None,
        use_json: bool = False,
        use_color: bool = True,
        task_paths: Optional[object] = None,
        run_id: Optional[str] = None,
    ) -> logging.Logger:
        """
        Retrieve or create a logger configured for console and file output.

        Args:
            name (str): Logger name, usually the module's `__name__`.
            log_file (Optional[str]): Explicit log file path. Overrides
                task_paths if set.
            level (Optional[str]): Level threshold; the configured default
                when omitted.
            use_json (bool): Write the file log as JSON lines.
            use_color (bool): Color the console output.
            task_paths (Optional[object]): A `TaskPaths` used to resolve the
                log file when `log_file` is not given.
            run_id (Optional[str]): Run identifier for per-run log files.

        Returns:
            logging.Logger: The configured logger.
        """
        logger_key = f"{name}-{run_id}" if run_id else name
        if logger_key in cls._loggers:
            return cls._loggers[logger_key]

        level = (level or cls._default_level).upper()
        logger = logging.getLogger(logger_key)
        logger.setLevel(level)
        logger.propagate = False

        if not log_file and task_paths:
            log_file = task_paths.get_log_path(run_id=run_id)

        log_dir = os.path.dirname(log_file) if log_file else cls._default_log_dir
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        if not log_file:
            log_file = os.path.join(log_dir, "coursebooks.log")

        logger.addHandler(cls._setup_file_handler(log_file, level, use_json))
        logger.addHandler(cls._setup_console_handler(level, use_color))

        cls._loggers[logger_key] = logger
        return logger

    @staticmethod
    def _setup_file_handler(filepath: str, level: str, use_json: bool) -> logging.Handler:
        handler = logging.FileHandler(filepath, encoding="utf-8")
        handler.setLevel(level)
        handler.setFormatter(LoggerManager._get_formatter(use_json=use_json, color=False))
        return handler

    @staticmethod
    def _setup_console_handler(level: str, use_color: bool) -> logging.Handler:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(LoggerManager._get_formatter(use_json=False, color=use_color))
        return handler

    @staticmethod
    def _get_formatter(use_json: bool = False, color: bool = False) -> logging.Formatter:
        """
        Returns the formatter for a handler.

        Args:
            use_json (bool): JSON formatter for structured file logs.
            color (bool): Colored formatter for the console.

        Returns:
            logging.Formatter: A formatter instance.
        """
        if use_json:
            return JsonLogFormatter()

        fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        datefmt = "%Y-%m-%d %H:%M:%S"

        if color:
            return ColoredFormatter(
                fmt="%(log_color)s" + fmt,
                datefmt=datefmt,
                log_colors={
                    'DEBUG': 'cyan',
                    'INFO': 'green',
                    'WARNING': 'yellow',
                    'ERROR': 'red',
                    'CRITICAL': 'bold_red',
                },
            )
        return logging.Formatter(fmt, datefmt)


class JsonLogFormatter(logging.Formatter):
    """
    Formats records as one JSON object per line.

    Example Output:
        {
            "timestamp": "2025-05-07 13:12:01",
            "level": "WARNING",
            "logger": "coursebooks.store.pipeline",
            "message": "ingest.row.skipped",
            "table": "Sales",
            "line": 14
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": self.formatTime(record, "%Y-%m-%d %H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "extra_data"):
            log_record.update(record.extra_data)
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_record, default=str)
