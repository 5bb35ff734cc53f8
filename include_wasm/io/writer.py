"""
Writer — persist expansion outputs.

Every file is written to a temporary sibling and moved into place, so a
concurrent expansion of the same host never observes a partial file.
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Iterable

from include_wasm.io.schema import ExpansionReceipt


def write_atomic(path: Path, data: bytes) -> Path:
    """Write *data* to *path* via a temporary file in the same directory."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise
    return path


def write_expanded(path: Path, source: str) -> Path:
    return write_atomic(path, source.encode("utf-8"))


def _escape_make(path: str) -> str:
    return path.replace("\\", "\\\\").replace(" ", "\\ ").replace("#", "\\#").replace("$", "$$")


def write_depfile(path: Path, target: Path, dependencies: Iterable[Path]) -> Path:
    """
    Write a Make-style depfile: ``target: dep dep ...``.

    Build systems that understand depfiles re-run the expansion when the
    host file or any module source changes.
    """
    deps = sorted(dict.fromkeys(str(d) for d in dependencies))
    parts = [f"{_escape_make(str(target))}:"] + [f" \\\n  {_escape_make(d)}" for d in deps]
    return write_atomic(path, ("".join(parts) + "\n").encode("utf-8"))


def write_receipt(path: Path, receipt: ExpansionReceipt) -> Path:
    text = json.dumps(receipt.model_dump(mode="json"), indent=2, sort_keys=True) + "\n"
    return write_atomic(path, text.encode("utf-8"))
