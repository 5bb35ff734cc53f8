"""
Module sources — the files an embedded module depends on.

The expansion must be redone whenever any of these change, so they are
listed in the depfile and fingerprinted in the receipt.
"""
from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import List

SKIP_DIRS = frozenset({"target", ".git", ".hg", ".svn"})


def collect_module_files(project_dir: Path) -> List[Path]:
    """Every regular file under *project_dir*, sorted, build outputs excluded."""
    files: List[Path] = []
    for root, dirs, names in os.walk(project_dir):
        dirs[:] = sorted(d for d in dirs if d not in SKIP_DIRS)
        for name in names:
            path = Path(root) / name
            if path.is_file():
                files.append(path)
    return sorted(files)


def fingerprint(project_dir: Path, files: List[Path]) -> str:
    """
    Deterministic hash over all module files.
    Sorted by relative path, then hash (path + content) for each.
    """
    h = hashlib.sha256()
    for path in sorted(files, key=lambda p: p.relative_to(project_dir).as_posix()):
        h.update(path.relative_to(project_dir).as_posix().encode("utf-8"))
        h.update(path.read_bytes())
    return h.hexdigest()
