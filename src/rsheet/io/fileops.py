"""File helpers for traces, scripts and config files."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any

import orjson


def atomic_write(target: str | Path, data: bytes) -> None:
    """Replace *target* with *data* so readers never see a partial file.

    The temp file lives beside the target so ``os.replace`` stays on one
    filesystem.
    """
    target = Path(target)
    with tempfile.NamedTemporaryFile(
        dir=target.parent, prefix=".rsheet_tmp_", suffix=target.suffix, delete=False
    ) as tmp:
        tmp_path = Path(tmp.name)
        try:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        except OSError:
            tmp.close()
            tmp_path.unlink(missing_ok=True)
            raise
    try:
        os.replace(tmp_path, target)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


def write_json(target: str | Path, data: Any) -> str:
    """Atomically write *data* as indented JSON. Returns the path written."""
    atomic_write(target, orjson.dumps(data, option=orjson.OPT_INDENT_2) + b"\n")
    return str(Path(target))


def read_text_safe(path: str | Path) -> str:
    """Read a text file, stripping a leading UTF-8 BOM when present."""
    return Path(path).read_text(encoding="utf-8-sig")
