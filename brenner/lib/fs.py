"""JSON file helpers: whole-file reads and atomic replacement writes."""

import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any

from brenner.errors import StorageCorruptionError

logger = logging.getLogger(__name__)


def read_json(path: Path) -> Any | None:
    """Return parsed JSON, None when the file is missing.

    Raises StorageCorruptionError when the file exists but cannot be decoded.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except UnicodeDecodeError as e:
        raise StorageCorruptionError(path, f"not valid UTF-8: {e}") from e
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise StorageCorruptionError(path, f"invalid JSON: {e}") from e


def write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON to a sibling temp file, then move it over ``path``.

    Readers see either the previous file or the new one, never a partial write.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    logger.debug(f"Wrote {path}")
