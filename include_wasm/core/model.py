"""
Model — the invocation-scoped entities of one expansion.

    BuildRequest  (validated configuration, pydantic)
        → BuildCommand  (concrete build-tool invocation)
        → BuildOutcome  (BuildSucceeded | BuildFailed)
        → Artifact      (bytes of the single located module)

Nothing here is shared between invocations.
"""
from __future__ import annotations

import hashlib
import shlex
from dataclasses import dataclass
from enum import Enum, unique
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, field_validator


# ── Call-site location ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class SourceLocation:
    """A position in a host source file (line and column are 1-based)."""
    file: str
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


# ── Proposals ────────────────────────────────────────────────────────────────

@unique
class Proposal(str, Enum):
    """WebAssembly proposals that can be enabled on the target.

    Declaration order is the canonical order used when building flags.
    """
    ATOMICS = "atomics"
    BULK_MEMORY = "bulk_memory"
    MUTABLE_GLOBALS = "mutable_globals"


def canonical_proposals(proposals) -> List[Proposal]:
    """Return *proposals* in declaration order."""
    return [p for p in Proposal if p in proposals]


# ── BuildRequest ─────────────────────────────────────────────────────────────

class BuildRequest(BaseModel):
    """One build request, as written at a single call site."""

    model_config = ConfigDict(frozen=True)

    source_path: Path
    resolved_path: Optional[Path] = None
    proposals: FrozenSet[Proposal] = frozenset()
    env_overrides: Tuple[Tuple[str, str], ...] = ()
    release: bool = False
    location: Optional[SourceLocation] = None

    @field_validator("env_overrides")
    @classmethod
    def _distinct_env_names(cls, v):
        seen = set()
        for name, _ in v:
            if name in seen:
                raise ValueError(f"environment variable `{name}` given more than once")
            seen.add(name)
        return v

    @property
    def env(self) -> Dict[str, str]:
        return dict(self.env_overrides)

    @property
    def mode(self) -> str:
        """Cargo profile directory name for this request."""
        return "release" if self.release else "debug"

    def with_resolved(self, resolved_path: Path) -> "BuildRequest":
        """Return a copy with ``resolved_path`` set.  Allowed exactly once."""
        if self.resolved_path is not None:
            raise ValueError(
                f"resolved_path already set to {self.resolved_path}; "
                "it is never recomputed against another base"
            )
        return self.model_copy(update={"resolved_path": resolved_path})


# ── BuildCommand ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class BuildCommand:
    """A fully specified build-tool invocation.

    ``env`` is stored sorted by name so that equal inputs compare equal.
    """
    executable: str
    args: Tuple[str, ...]
    env: Tuple[Tuple[str, str], ...]
    working_dir: Path
    target_dir: Path

    def argv(self) -> List[str]:
        return [self.executable, *self.args]

    def env_dict(self) -> Dict[str, str]:
        return dict(self.env)

    def display(self) -> str:
        return shlex.join(self.argv())


# ── BuildOutcome ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class BuildSucceeded:
    target_dir: Path
    stdout: bytes
    stderr: bytes
    duration_ms: int = 0


@dataclass(frozen=True)
class BuildFailed:
    exit_code: int
    stdout: bytes
    stderr: bytes
    duration_ms: int = 0


BuildOutcome = Union[BuildSucceeded, BuildFailed]


# ── Artifact ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Artifact:
    """The bytes of the located module, read once."""
    path: Path
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def sha256(self) -> str:
        return hashlib.sha256(self.data).hexdigest()
