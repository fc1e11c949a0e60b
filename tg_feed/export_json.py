from __future__ import annotations

import json
from pathlib import Path

from .errors import ExportError
from .post import ScrapeResult


def write_result_json(result: ScrapeResult, path: str | Path) -> Path:
    """
    Write a ScrapeResult as pretty-printed UTF-8 JSON.

    Raises ExportError when the file cannot be written.
    """
    p = Path(path)
    payload = json.dumps(result.to_dict(), indent=2, ensure_ascii=False)

    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        tmp = p.with_name(p.name + ".tmp")
        tmp.write_text(payload + "\n", encoding="utf-8")
        tmp.replace(p)
    except OSError as e:
        raise ExportError(f"Failed to write result JSON: {p}: {e}") from e

    return p
