import json
import threading
from datetime import datetime
from typing import Any, Dict, Optional

# -------------------------
# Global run identifiers
# -------------------------
RUN_ID = datetime.now().astimezone().strftime("%Y%m%d-%H%M%S")

_LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "ERROR": 40}


class PrintLogger:
    """JSON-line logger writing to stdout and, optionally, appending to a file.

    ``bind`` returns a logger sharing the same output that adds fixed fields
    (for example the job id token of one execution) to every record.
    """

    _lock = threading.Lock()

    def __init__(
        self,
        job_name: str,
        file_path: Optional[str] = None,
        level: str = "INFO",
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.job = job_name
        self.file_path = file_path
        self.level = level.upper()
        self.context: Dict[str, Any] = dict(context or {})

    def bind(self, **fields: Any) -> "PrintLogger":
        child = type(self).__new__(type(self))
        child.__dict__.update(self.__dict__)
        child.context = {**self.context, **fields}
        return child

    def enabled(self, level: str) -> bool:
        return _LEVELS.get(level.upper(), 20) >= _LEVELS.get(self.level, 20)

    def _write_line(self, line: str) -> None:
        with self._lock:
            print(line)
            if self.file_path:
                with open(self.file_path, "a", encoding="utf-8") as handle:
                    handle.write(line + "\n")

    def log(self, level: str, msg: str, **kv: Any) -> None:
        if not self.enabled(level):
            return
        record: Dict[str, Any] = {
            "ts": datetime.now().astimezone().isoformat(timespec="milliseconds"),
            "level": level.upper(),
            "job": self.job,
            **self.context,
            **kv,
            "msg": msg,
            "run_id": RUN_ID,
        }
        # rows, enums and paths are stringified rather than rejected
        self._write_line(json.dumps(record, separators=(",", ":"), ensure_ascii=False, default=str))

    def debug(self, msg: str, **kv: Any) -> None:
        self.log("DEBUG", msg, **kv)

    def info(self, msg: str, **kv: Any) -> None:
        self.log("INFO", msg, **kv)

    def warn(self, msg: str, **kv: Any) -> None:
        self.log("WARN", msg, **kv)

    def error(self, msg: str, **kv: Any) -> None:
        self.log("ERROR", msg, **kv)

    def event(self, event: str, level: str = "INFO", **kv: Any) -> None:
        self.log(level, event, **{"event": event, **kv})
