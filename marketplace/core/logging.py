"""
Centralized logging configuration.

Every record is written twice: as structured JSON (one object per line, easy to
ship to a log pipeline) and as indented human-readable text. Request-scoped
values (request id, operation, signed-in user) are pulled from context
variables so call sites do not have to pass them around.
"""

import json
import logging
import logging.handlers
import uuid
from datetime import datetime, timezone
from pathlib import Path
from contextvars import ContextVar
from typing import Optional, Dict, Any
import traceback
import functools
import time

_request_id: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
_operation: ContextVar[Optional[str]] = ContextVar('operation', default=None)
_user_id: ContextVar[Optional[str]] = ContextVar('user_id', default=None)

# Keys never rendered from a context dict
_REDACTED_KEYS = {"client_secret", "authorization", "stripe-signature", "password"}


def _scrub(context: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: ("***" if key.lower() in _REDACTED_KEYS else value)
        for key, value in context.items()
    }


class StructuredJSONFormatter(logging.Formatter):
    """Formatter that outputs one JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = _request_id.get()
        if request_id:
            log_data["request_id"] = request_id

        operation = _operation.get()
        if operation:
            log_data["operation"] = operation

        user_id = _user_id.get()
        if user_id:
            log_data["user_id"] = user_id

        if hasattr(record, 'event'):
            log_data["event"] = record.event

        log_data["message"] = record.getMessage()

        if getattr(record, 'context', None):
            log_data["context"] = _scrub(record.context)

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info)
            }

        return json.dumps(log_data, ensure_ascii=False, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Formatter that outputs a header line followed by indented context."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        lines = [
            f"{timestamp} {record.levelname:8s} [{record.name}] {record.funcName}() - {record.getMessage()}"
        ]

        for label, value in (
            ("request_id", _request_id.get()),
            ("operation", _operation.get()),
            ("user_id", _user_id.get()),
            ("event", getattr(record, 'event', None)),
        ):
            if value:
                lines.append(f"  {label}: {value}")

        context = getattr(record, 'context', None)
        if isinstance(context, dict):
            for key, value in _scrub(context).items():
                if isinstance(value, (dict, list)):
                    rendered = json.dumps(value, indent=2, ensure_ascii=False, default=str)
                    lines.append(f"  {key}:")
                    lines.extend('    ' + line for line in rendered.split('\n'))
                else:
                    value_str = str(value)
                    if len(value_str) > 500:
                        value_str = value_str[:500] + "... (truncated)"
                    lines.append(f"  {key}: {value_str}")
        elif context:
            lines.append(f"  context: {context}")

        if record.exc_info:
            exc_type, exc_value, exc_traceback = record.exc_info
            lines.append(f"  exception_type: {exc_type.__name__ if exc_type else 'Unknown'}")
            lines.append(f"  exception_message: {exc_value if exc_value else 'N/A'}")
            if exc_traceback:
                lines.append("  traceback:")
                for tb_line in traceback.format_exception(exc_type, exc_value, exc_traceback):
                    for line in tb_line.rstrip().split('\n'):
                        lines.append(f"    {line}")

        return '\n'.join(lines)


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[Path] = None,
    console: bool = True,
) -> None:
    """
    Initialize the logging system.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files. If None, uses <project root>/logs/
        console: Also emit human-readable records to stderr
    """
    if log_dir is None:
        log_dir = Path(__file__).resolve().parent.parent.parent / "logs"
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    level = getattr(logging, log_level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    json_log_file = log_dir / "marketplace.log.json"
    text_log_file = log_dir / "marketplace.log"

    for path, formatter in (
        (json_log_file, StructuredJSONFormatter()),
        (text_log_file, HumanReadableFormatter()),
    ):
        handler = logging.handlers.TimedRotatingFileHandler(
            filename=str(path),
            when='midnight',
            interval=1,
            backupCount=30,
            encoding='utf-8'
        )
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(HumanReadableFormatter())
        root_logger.addHandler(console_handler)

    # Stripe's client logs every request at INFO
    logging.getLogger("stripe").setLevel(logging.WARNING)

    log_event(
        level="INFO",
        logger="marketplace.core.logging",
        function="setup_logging",
        operation="logging_setup",
        event="logging_initialized",
        message="Logging system initialized",
        context={
            "log_level": log_level,
            "log_dir": str(log_dir),
            "console": console,
        }
    )


def get_request_id() -> Optional[str]:
    """Get the current request ID from context."""
    return _request_id.get()


def set_request_id(request_id: str) -> None:
    """Set the request ID in context."""
    _request_id.set(request_id)


def generate_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


def set_user_id(user_id: Optional[str]) -> None:
    """Attach the signed-in user to every record logged for this request."""
    _user_id.set(user_id)


def log_event(
    level: str,
    logger: str,
    function: str,
    operation: Optional[str] = None,
    event: Optional[str] = None,
    message: str = "",
    context: Optional[Dict[str, Any]] = None,
    exc_info: Optional[BaseException] = None
) -> None:
    """
    Log a structured event.

    Args:
        level: Log level name
        logger: Logger name (usually module path)
        function: Function name where the log originated
        operation: High-level operation name
        event: Specific event type
        message: Human-readable message
        context: Operation-specific data
        exc_info: Exception to attach
    """
    logger_instance = logging.getLogger(logger)
    log_method = getattr(logger_instance, level.lower(), logger_instance.info)

    extra = {}
    if event:
        extra['event'] = event
    if context:
        extra['context'] = context

    if operation:
        token = _operation.set(operation)
        try:
            log_method(message, extra=extra, exc_info=exc_info)
        finally:
            _operation.reset(token)
    else:
        log_method(message, extra=extra, exc_info=exc_info)


def log_operation_start(
    logger: str,
    function: str,
    operation: str,
    message: str = "",
    context: Optional[Dict[str, Any]] = None
) -> None:
    """Log the start of an operation."""
    log_event(
        level="INFO",
        logger=logger,
        function=function,
        operation=operation,
        event="operation_start",
        message=message or f"Starting {operation}",
        context=context
    )


def log_operation_complete(
    logger: str,
    function: str,
    operation: str,
    message: str = "",
    context: Optional[Dict[str, Any]] = None,
    duration: Optional[float] = None
) -> None:
    """Log the completion of an operation."""
    context = dict(context or {})
    if duration is not None:
        context["duration_seconds"] = round(duration, 4)

    log_event(
        level="INFO",
        logger=logger,
        function=function,
        operation=operation,
        event="operation_complete",
        message=message or f"Completed {operation}",
        context=context
    )


def log_operation_error(
    logger: str,
    function: str,
    operation: str,
    error: BaseException,
    message: str = "",
    context: Optional[Dict[str, Any]] = None
) -> None:
    """Log an operation error with its traceback."""
    context = dict(context or {})
    context["error_type"] = type(error).__name__
    context["error_message"] = str(error)

    log_event(
        level="ERROR",
        logger=logger,
        function=function,
        operation=operation,
        event="operation_error",
        message=message or f"Error in {operation}",
        context=context,
        exc_info=error
    )


def operation_logger(operation_name: str):
    """
    Decorator that logs start/complete/error around an async callable.

    Usage:
        @operation_logger("video_upload")
        async def upload_video(...):
            ...
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            logger_name = func.__module__
            function_name = func.__name__

            log_operation_start(
                logger=logger_name,
                function=function_name,
                operation=operation_name,
                context={"kwargs": {k: str(v)[:200] for k, v in kwargs.items()} if kwargs else None}
            )

            start_time = time.monotonic()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                log_operation_error(
                    logger=logger_name,
                    function=function_name,
                    operation=operation_name,
                    error=e,
                    context={"duration_seconds": round(time.monotonic() - start_time, 4)}
                )
                raise

            log_operation_complete(
                logger=logger_name,
                function=function_name,
                operation=operation_name,
                context={"result_type": type(result).__name__},
                duration=time.monotonic() - start_time
            )
            return result

        return wrapper
    return decorator
