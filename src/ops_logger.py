from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


class OpsLogger:
    """Append-only JSONL logger for auto-sequence and enrichment events.

    - Writes one JSON object per line to a file (UTF-8, newline-delimited)
    - Optional in-memory sink (``file_path=None``) used by tests and dry runs
    - Thread-safe (coarse lock)
    - Best-effort: never raises to caller
    """

    def __init__(self, file_path: Optional[Path] = None, also_stdout: bool = False) -> None:
        self.file_path = Path(file_path) if file_path else None
        self.also_stdout = bool(also_stdout)
        self.records: List[Dict[str, Any]] = []
        self._lock = threading.Lock()
        if self.file_path is not None:
            try:
                self.file_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError:
                pass

    def event(self, kind: str, **fields: Any) -> None:
        record = {"mbx_ops": 1, "event": kind, "ts": datetime.now(timezone.utc).isoformat()}
        record.update(fields)
        self.emit(record)

    def emit(self, record: Dict[str, Any]) -> None:
        try:
            line = json.dumps(record, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            line = json.dumps({"mbx_ops": 1, "_serialization_error": True, "record_str": str(record)})
        with self._lock:
            if self.file_path is None:
                self.records.append(record)
            else:
                try:
                    with self.file_path.open("a", encoding="utf-8") as f:
                        f.write(line)
                        f.write("\n")
                except OSError:
                    # Never propagate logging errors
                    pass
        if self.also_stdout:
            print(line)
