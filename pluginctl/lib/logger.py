"""
Logging setup for pluginctl.

Discovery and catalog code log through ``logging.getLogger(__name__)`` and
attach ``discovery``, ``context`` and ``path`` via ``extra=``. The formatter
installed here appends whichever of those are present to each line.
"""

import logging
import sys
from typing import Optional, TextIO

from pluginctl.config import get_settings

DIAGNOSTIC_FIELDS = ("discovery", "context", "path")


class DiagnosticsFilter(logging.Filter):
    """Renders the discovery/context/path extras into ``record.diagnostics``."""

    def filter(self, record: logging.LogRecord) -> bool:
        parts = [
            f"{field}={getattr(record, field)}"
            for field in DIAGNOSTIC_FIELDS
            if getattr(record, field, None) not in (None, "")
        ]
        record.diagnostics = f" [{' '.join(parts)}]" if parts else ""
        return True


def setup_logging(
    level: Optional[str] = None,
    format_string: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> logging.Handler:
    """Configure the root logger from settings and return the installed handler.

    Logs go to stderr by default so plugin listings on stdout stay clean.
    """
    settings = get_settings()

    log_level = getattr(logging, (level or settings.log_level).upper())
    log_format = format_string or settings.log_format

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(log_level)
    handler.addFilter(DiagnosticsFilter())
    handler.setFormatter(logging.Formatter(log_format))
    root_logger.addHandler(handler)

    # Reduce noise from the HTTP and cluster clients
    for name in ("httpx", "httpcore", "kubernetes", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)

    return handler
