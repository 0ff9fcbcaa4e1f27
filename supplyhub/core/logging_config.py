"""
logging_config.py — Logging for the SupplyHub API.

setup_logging() is called once by create_app(). Every handler it installs
carries two filters:

  RequestContextFilter  stamps route / method / user_id / ip from the
                        current Flask request (blank outside a request)
  RedactingFilter       masks JWTs and API keys in the rendered message,
                        so session and upload tokens never reach disk

Console output is coloured text (or JSON with LOG_JSON=true); the file
log under DATA_DIR/logs is always JSON, rotated at 5 MB.
"""
import re
import os
import json
import logging
import logging.handlers
from datetime import datetime, timezone

from flask import g, has_request_context, request

from supplyhub.core.paths import LOG_DIR

# Extra fields copied into JSON lines when a record carries them
CONTEXT_FIELDS = ("route", "method", "status", "duration_ms", "user_id", "ip",
                  "rfq_id", "order_id", "code")

_JWT = re.compile(r"\beyJ[\w-]+\.[\w-]+\.[\w-]+")
_API_KEY = re.compile(r"\b(sk-[A-Za-z0-9_-]{6})[A-Za-z0-9_-]+|\b(re_[A-Za-z0-9]{4})[A-Za-z0-9_]+")


def redact(text: str) -> str:
    """Mask bearer/upload tokens entirely and API keys after their prefix."""
    text = _JWT.sub("<token>", text)
    return _API_KEY.sub(lambda m: (m.group(1) or m.group(2)) + "****", text)


class RedactingFilter(logging.Filter):
    def filter(self, record):
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg, record.args = cleaned, None
        return True


class RequestContextFilter(logging.Filter):
    """Fill route/method/user_id/ip from the active request unless the caller set them."""

    def filter(self, record):
        if not has_request_context():
            return True
        identity = getattr(g, "identity", None)
        rule = request.url_rule.rule if request.url_rule else request.path
        defaults = {
            "route": rule,
            "method": request.method,
            "user_id": identity.user_id if identity else None,
            "ip": request.remote_addr,
        }
        for key, value in defaults.items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record):
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "func": record.funcName,
            "line": record.lineno,
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = redact(self.formatException(record.exc_info))
        return json.dumps(entry, default=str)


class HumanFormatter(logging.Formatter):
    """HH:MM:SS [L] logger: message, coloured by level."""
    COLORS = {
        "DEBUG": "\033[36m", "INFO": "\033[32m",
        "WARNING": "\033[33m", "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, color: bool = True):
        super().__init__()
        self.color = color

    def format(self, record):
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{ts} [{record.levelname[0]}] {record.name}: {record.getMessage()}"
        user_id = getattr(record, "user_id", None)
        if user_id:
            line += f" (user {user_id[:8]})"
        if record.exc_info and record.exc_info[0]:
            line += "\n" + redact(self.formatException(record.exc_info))
        if self.color:
            line = f"{self.COLORS.get(record.levelname, '')}{line}{self.RESET}"
        return line


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("true", "1", "yes")


def _attach(handler: logging.Handler, formatter: logging.Formatter) -> logging.Handler:
    handler.setFormatter(formatter)
    handler.addFilter(RequestContextFilter())
    handler.addFilter(RedactingFilter())
    return handler


def setup_logging(level=None, json_logs=None, log_dir=None):
    """
    Configure the root logger for the whole application.

    Args:
        level: log level name (default: LOG_LEVEL env or INFO)
        json_logs: JSON console output (default: LOG_JSON env)
        log_dir: directory for supplyhub.log (default: DATA_DIR/logs)
    """
    level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    if json_logs is None:
        json_logs = _env_flag("LOG_JSON")
    log_dir = log_dir or LOG_DIR

    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    root.handlers.clear()

    console = logging.StreamHandler()
    color = hasattr(console.stream, "isatty") and console.stream.isatty()
    _attach(console, JSONFormatter() if json_logs else HumanFormatter(color=color))
    root.addHandler(console)

    try:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, "supplyhub.log"), maxBytes=5_000_000, backupCount=5,
        )
        root.addHandler(_attach(file_handler, JSONFormatter()))
    except OSError:
        logging.getLogger("supplyhub").warning("File logging disabled: %s not writable", log_dir)

    for name in ("urllib3", "werkzeug"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("supplyhub").info("Logging initialized (%s, %s)", level,
                                        "json" if json_logs else "text")
