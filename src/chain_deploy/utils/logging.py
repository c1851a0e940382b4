"""Console and JSON-lines logging for deployment runs."""

import logging
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

# Set by LogContext around each deployment and wiring call
CONTEXT_FIELDS = ('unit', 'step_index', 'operation')

DEFAULT_LOG_DIR = Path('.chain-deploy/logs')


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with the deployment context fields."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Short colored lines, prefixed with the unit or wiring step being run."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        """Format a record as ``HH:MM:SS LEVEL [context] message``."""
        level = f"{record.levelname:8}"
        if self.use_color and record.levelname in self.COLORS:
            level = f"{self.COLORS[record.levelname]}{level}{self.RESET}"

        message = record.getMessage()
        unit = getattr(record, 'unit', None)
        step_index = getattr(record, 'step_index', None)
        if unit is not None:
            message = f"[{unit}] {message}"
        elif step_index is not None:
            message = f"[step {step_index}] {message}"

        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S')
        return f"{timestamp} {level} {message}"


def setup_logging(log_level: str = 'info', log_dir: Optional[Path] = None) -> Path:
    """Send logs to stderr and to a daily JSON-lines file.

    Args:
        log_level: Console level (debug, info, warning, error); the file always gets debug
        log_dir: Directory for the JSON-lines file (defaults to .chain-deploy/logs)

    Returns:
        Path of the log file
    """
    level = getattr(logging, log_level.upper())

    log_dir = Path(log_dir) if log_dir else DEFAULT_LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"chain-deploy-{datetime.now(timezone.utc).strftime('%Y%m%d')}.jsonl"

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        if isinstance(handler.formatter, (ConsoleFormatter, JSONFormatter)):
            handler.close()
    root_logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(ConsoleFormatter(use_color=sys.stderr.isatty()))
    root_logger.addHandler(console_handler)

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(JSONFormatter())
    root_logger.addHandler(file_handler)

    # web3 logs every RPC request at debug
    for noisy in ('web3', 'urllib3'):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return log_file


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)


class LogContext:
    """Attach ``unit``/``step_index``/``operation`` to every record logged inside the block."""

    def __init__(self, logger: logging.Logger, **fields: Any):
        unknown = set(fields) - set(CONTEXT_FIELDS)
        if unknown:
            raise ValueError(f"Unsupported log context fields: {', '.join(sorted(unknown))}")
        self.logger = logger
        self.fields = fields
        self._previous_factory = None

    def __enter__(self):
        previous_factory = logging.getLogRecordFactory()
        fields = self.fields

        def record_factory(*args, **kwargs):
            record = previous_factory(*args, **kwargs)
            record.__dict__.update(fields)
            return record

        self._previous_factory = previous_factory
        logging.setLogRecordFactory(record_factory)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        logging.setLogRecordFactory(self._previous_factory)
