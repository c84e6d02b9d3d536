# app/core/logging.py
"""
Logging do motor de fulfillment.

- Cores por nível (consola) e ficheiro com rotação diária
- Request ID e vendor em contexto (ContextVar), injetados em cada record
- log_timing() para medir operações contra fornecedores
"""

import logging
import os
import re
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timedelta
from logging.handlers import TimedRotatingFileHandler

from dotenv import load_dotenv

load_dotenv()

_request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
_vendor_ctx: ContextVar[str | None] = ContextVar("vendor_id", default=None)

LOGGER_PREFIXES = ("app.", "dsf.")


class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    BRIGHT_RED = "\033[91m"
    BRIGHT_BLUE = "\033[94m"


LEVEL_STYLES = {
    logging.DEBUG: (Colors.CYAN, "DBG"),
    logging.INFO: (Colors.GREEN, "INF"),
    logging.WARNING: (Colors.YELLOW, "WRN"),
    logging.ERROR: (Colors.RED, "ERR"),
    logging.CRITICAL: (Colors.BRIGHT_RED + Colors.BOLD, "CRT"),
}


class ContextFilter(logging.Filter):
    """Adiciona request_id e vendor_id a todos os records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id_ctx.get() or "-"
        record.vendor_id = _vendor_ctx.get() or "-"
        return True


def _short_name(name: str) -> str:
    for prefix in LOGGER_PREFIXES:
        if name.startswith(prefix):
            name = name[len(prefix) :]
            break
    return name.replace(".services.", ".").replace("domains.", "").replace("api.v1.", "api.")


def _context_tag(record: logging.LogRecord) -> str:
    rid = getattr(record, "request_id", "-")
    vendor = getattr(record, "vendor_id", "-")
    return f"[{rid}]" if vendor == "-" else f"[{rid}@{vendor}]"


class ColoredFormatter(logging.Formatter):
    """
    Consola: HH:MM:SS.mmm | LVL | logger | [rid@vendor] | message
    """

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and hasattr(sys.stdout, "isatty") and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        dt = datetime.fromtimestamp(record.created)
        time_str = dt.strftime("%H:%M:%S") + f".{int(record.msecs):03d}"
        color, short_level = LEVEL_STYLES.get(record.levelno, (Colors.WHITE, record.levelname[:3]))
        name = _short_name(record.name)
        tag = _context_tag(record)

        if self.use_colors:
            parts = [
                f"{Colors.DIM}{time_str}{Colors.RESET}",
                f"{color}{short_level:>3}{Colors.RESET}",
                f"{Colors.BRIGHT_BLUE}{name:<25}{Colors.RESET}",
                f"{Colors.DIM}{tag}{Colors.RESET}",
                record.getMessage(),
            ]
        else:
            parts = [time_str, f"{short_level:>3}", f"{name:<25}", tag, record.getMessage()]

        formatted = " | ".join(parts)
        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)
        return formatted


class FileFormatter(logging.Formatter):
    """Ficheiro: YYYY-MM-DD HH:MM:SS.mmm | LVL | logger | [rid@vendor] | message"""

    def format(self, record: logging.LogRecord) -> str:
        dt = datetime.fromtimestamp(record.created)
        time_str = dt.strftime("%Y-%m-%d %H:%M:%S") + f".{int(record.msecs):03d}"
        level = record.levelname[:3]
        formatted = (
            f"{time_str} | {level:>3} | {_short_name(record.name):<25} | "
            f"{_context_tag(record)} | {record.getMessage()}"
        )
        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)
        return formatted


# -------- Context helpers ----------
def get_request_id() -> str | None:
    return _request_id_ctx.get()


def set_request_id(rid: str | None) -> None:
    _request_id_ctx.set(rid)


@contextmanager
def vendor_context(vendor_id: str | None):
    """Marca os logs emitidos dentro do bloco com o vendor_id."""
    token = _vendor_ctx.set(vendor_id)
    try:
        yield
    finally:
        _vendor_ctx.reset(token)


# -------- Rotação ----------
_DATE_SUFFIX = "%Y-%m-%d"
_LOG_RE = re.compile(r"^(?P<base>.+)\.log\.(?P<date>\d{4}-\d{2}-\d{2})$")


def _purge_old_logs(log_dir: str, base_name: str, days: int = 30) -> int:
    cutoff = (datetime.now() - timedelta(days=days)).date()
    removed = 0
    for fname in os.listdir(log_dir):
        m = _LOG_RE.match(fname)
        if not m or not m.group("base").endswith(base_name):
            continue
        try:
            dt = datetime.strptime(m.group("date"), _DATE_SUFFIX).date()
        except ValueError:
            continue
        if dt < cutoff:
            try:
                os.remove(os.path.join(log_dir, fname))
                removed += 1
            except OSError:
                pass
    return removed


# -------- Timing ----------
@contextmanager
def log_timing(operation: str, logger: logging.Logger | str | None = None, **context):
    """
    Regista a duração de uma operação.

        with log_timing("printful.create_order", log, vendor="printful"):
            ...

    -> printful.create_order starting (vendor=printful)
    <- printful.create_order done in 150.2ms (vendor=printful)
    """
    if isinstance(logger, str):
        logger = logging.getLogger(logger)
    elif logger is None:
        logger = logging.getLogger("dsf.timing")

    ctx_str = ", ".join(f"{k}={v}" for k, v in context.items())
    ctx_display = f" ({ctx_str})" if ctx_str else ""

    logger.debug("-> %s starting%s", operation, ctx_display)
    t0 = time.perf_counter()
    try:
        yield
    except Exception as e:
        logger.warning(
            "<- %s FAILED in %.1fms: %s%s",
            operation,
            (time.perf_counter() - t0) * 1000,
            e,
            ctx_display,
        )
        raise
    logger.info("<- %s done in %.1fms%s", operation, (time.perf_counter() - t0) * 1000, ctx_display)


# -------- Setup ----------
def setup_logging() -> None:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    log_dir = os.getenv("LOG_DIR", os.path.join(os.getcwd(), "logs"))
    base_name = os.getenv("LOG_BASENAME", "dsf")
    retention_days = int(os.getenv("LOG_RETENTION_DAYS", "30"))
    use_colors = os.getenv("LOG_COLORS", "true").lower() in ("true", "1", "yes")

    os.makedirs(log_dir, exist_ok=True)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(ColoredFormatter(use_colors=use_colors))
    console.addFilter(ContextFilter())

    fileh = TimedRotatingFileHandler(
        filename=os.path.join(log_dir, f"{base_name}.log"),
        when="midnight",
        backupCount=retention_days,
        encoding="utf-8",
        delay=True,
    )
    fileh.suffix = _DATE_SUFFIX
    fileh.setFormatter(FileFormatter())
    fileh.addFilter(ContextFilter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(console)
    root.addHandler(fileh)

    logging.getLogger("httpx").setLevel(os.getenv("HTTPX_LOG_LEVEL", "WARNING").upper())
    logging.getLogger("httpcore").setLevel(os.getenv("HTTPX_LOG_LEVEL", "WARNING").upper())
    logging.getLogger("sqlalchemy.engine").setLevel(os.getenv("SQL_LOG_LEVEL", "WARNING").upper())

    removed = _purge_old_logs(log_dir, base_name, days=retention_days)
    if removed:
        logging.getLogger("dsf.logging").info("Purged %d old log file(s)", removed)

    logging.getLogger("dsf.logging").debug("Logging initialized: level=%s, colors=%s", level, use_colors)
