import logging, os, sys, json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

class JsonFormatter(logging.Formatter):
    """One JSON object per line; `extra={...}` fields listed in EXTRAS are carried through."""
    EXTRAS = ("stage", "backend", "key", "status", "packId", "field")

    def format(self, record: logging.LogRecord) -> str:
        line: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="seconds"),
            "lvl": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        line.update({k: getattr(record, k) for k in self.EXTRAS if getattr(record, k, None) is not None})
        if record.exc_info:
            line["exc"] = self.formatException(record.exc_info)
        return json.dumps(line, ensure_ascii=False, default=str)

def _json_handler(root: logging.Logger) -> Optional[logging.Handler]:
    return next((h for h in root.handlers if isinstance(h.formatter, JsonFormatter)), None)

def setup_logging(level: Optional[str] = None) -> logging.Handler:
    root = logging.getLogger()
    root.setLevel((level or os.getenv("APP_LOG_LEVEL", "INFO")).upper())
    # bootstrap may run more than once per process; keep a single JSON handler
    handler = _json_handler(root)
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonFormatter())
        root.addHandler(handler)
    return handler

def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
