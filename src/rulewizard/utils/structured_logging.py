"""
Logging setup for wizard runs.

Interactive runs log through rich on stderr so log lines never land in the
middle of a prompt. Scripted runs (CI, provisioning jobs) can switch to one
JSON object per line instead.
"""

import json
import logging
from datetime import datetime, timezone

from rich.console import Console
from rich.logging import RichHandler

# Run context attached with logger.info("...", extra={"run_id": ..., ...})
EXTRA_FIELDS = ("run_id", "state", "question", "op")


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, run context included when present."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            {key: getattr(record, key) for key in EXTRA_FIELDS if getattr(record, key, None) is not None}
        )
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False)


class RunContextFilter(logging.Filter):
    """Prefix console messages with the run id they belong to."""

    def filter(self, record: logging.LogRecord) -> bool:
        run_id = getattr(record, "run_id", None)
        record.run_prefix = f"[{run_id}] " if run_id else ""
        return True


def setup_structured_logging(level: str = "INFO", json_output: bool = False) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level name; unknown names fall back to INFO
        json_output: Emit JSON lines instead of rich console output
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if json_output:
        handler: logging.Handler = logging.StreamHandler()
        handler.setFormatter(StructuredFormatter())
    else:
        handler = RichHandler(console=Console(stderr=True), show_path=False, markup=False)
        handler.addFilter(RunContextFilter())
        handler.setFormatter(logging.Formatter("%(run_prefix)s%(message)s"))

    logging.basicConfig(level=log_level, handlers=[handler], force=True)
