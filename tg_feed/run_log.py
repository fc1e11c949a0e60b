from __future__ import annotations

import json
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, TextIO

_LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "ERROR": 40}


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _truncate(text: str, *, limit: int) -> str:
    s = str(text or "")
    if limit <= 0:
        return ""
    if len(s) <= limit:
        return s
    return s[: max(0, limit - 1)] + "…"


class _Sink:
    """Shared, lock-guarded output for a logger and the children it binds."""

    def __init__(self, path: Path | None, stream: TextIO | None, overwrite: bool) -> None:
        self.path = path
        self.lock = Lock()
        self._fp: TextIO | None = stream
        self._owns_fp = stream is None
        self._overwrite = overwrite

    def write(self, line: str) -> None:
        with self.lock:
            if self._fp is None:
                if self.path is None:
                    return
                self.path.parent.mkdir(parents=True, exist_ok=True)
                mode = "w" if self._overwrite else "a"
                self._fp = self.path.open(mode, encoding="utf-8", newline="\n")
            self._fp.write(line + "\n")
            self._fp.flush()

    def close(self) -> None:
        with self.lock:
            if self._fp is not None and self._owns_fp:
                try:
                    self._fp.flush()
                finally:
                    self._fp.close()
                self._fp = None


class RunLogger:
    """
    JSONL event log for crawls.

    Every line is one JSON object with ts, level, event, session_id and any bound
    crawl context (channel, mode, ...) plus the event's own data.
    """

    def __init__(
        self,
        path: str | Path | None = None,
        *,
        stream: TextIO | None = None,
        overwrite: bool = True,
        min_level: str = "DEBUG",
        session_id: str | None = None,
        _sink: _Sink | None = None,
        _context: dict[str, Any] | None = None,
    ) -> None:
        if _sink is None:
            _sink = _Sink(Path(path) if path is not None else None, stream, bool(overwrite))
        self._sink = _sink
        self._min_level = _LEVELS.get((min_level or "").strip().upper(), 10)
        self._session_id = (session_id or "").strip() or uuid.uuid4().hex
        self._context = dict(_context or {})

    @classmethod
    def open(cls, path: str | Path, *, overwrite: bool = True, min_level: str = "DEBUG") -> "RunLogger":
        return cls(path, overwrite=overwrite, min_level=min_level)

    @classmethod
    def discard(cls) -> "RunLogger":
        """Logger that drops every event; the default when a caller passes none."""
        return cls()

    @property
    def session_id(self) -> str:
        return self._session_id

    def bind(self, **context: Any) -> "RunLogger":
        """Child logger writing to the same sink with extra fixed fields."""
        merged = dict(self._context)
        merged.update({k: v for k, v in context.items() if v is not None})
        child = RunLogger(
            session_id=self._session_id,
            _sink=self._sink,
            _context=merged,
        )
        child._min_level = self._min_level
        return child

    def close(self) -> None:
        self._sink.close()

    def __enter__(self) -> "RunLogger":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def debug(self, event: str, **data: Any) -> None:
        self.log("DEBUG", event, **data)

    def info(self, event: str, **data: Any) -> None:
        self.log("INFO", event, **data)

    def warning(self, event: str, **data: Any) -> None:
        self.log("WARN", event, **data)

    def error(self, event: str, **data: Any) -> None:
        self.log("ERROR", event, **data)

    def exception(self, event: str, *, exc: BaseException, **data: Any) -> None:
        err = {
            "type": type(exc).__name__,
            "message": _truncate(str(exc), limit=2000),
            "traceback": _truncate(
                "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
                limit=12000,
            ),
        }
        self.log("ERROR", event, error=err, **data)

    def log(self, level: str, event: str, **data: Any) -> None:
        lvl = (level or "").strip().upper() or "INFO"
        if _LEVELS.get(lvl, 20) < self._min_level:
            return

        record: dict[str, Any] = {
            "ts": _utc_now_iso(),
            "level": lvl,
            "event": (event or "").strip() or "event",
            "session_id": self._session_id,
        }
        record.update(self._context)
        if data:
            record["data"] = data

        self._sink.write(
            json.dumps(
                record,
                ensure_ascii=False,
                sort_keys=True,
                separators=(",", ":"),
                default=str,
            )
        )
