"""
Diagnostics — pipeline errors → compiler-style messages at the call site.

One Diagnostic per failed invocation; diagnostics are never merged.
Rendering:

    tests/test_fixtures.py:12:10: error[BuildFailure]: build failed: ...
      help: run `rustup target add wasm32-unknown-unknown --toolchain nightly`
      | <last lines of the build tool's stderr>
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from include_wasm.core.errors import (
    AmbiguousArtifact,
    BuildFailure,
    IncludeWasmError,
    Stage,
    ToolchainUnavailable,
)
from include_wasm.core.model import SourceLocation

DEFAULT_TAIL_LINES = 40


@dataclass(frozen=True)
class Diagnostic:
    stage: Stage
    kind: str
    message: str
    location: SourceLocation
    context: Optional[str] = None
    remediation: Optional[str] = None


def stderr_tail(stderr: bytes, lines: int = DEFAULT_TAIL_LINES) -> str:
    """Last *lines* non-trailing-blank lines of *stderr*, decoded leniently."""
    text = stderr.decode("utf-8", errors="replace").rstrip()
    if not text:
        return ""
    kept = text.splitlines()
    if len(kept) > lines:
        omitted = len(kept) - lines
        kept = [f"... ({omitted} earlier lines omitted)"] + kept[-lines:]
    return "\n".join(kept)


def from_error(
    err: IncludeWasmError,
    fallback: SourceLocation,
    tail_lines: int = DEFAULT_TAIL_LINES,
) -> Diagnostic:
    """Convert *err* into a Diagnostic, anchored at *fallback* if unlocated."""
    context = err.context
    if isinstance(err, BuildFailure):
        context = stderr_tail(err.stderr, tail_lines) or context
    elif isinstance(err, AmbiguousArtifact) and context is None:
        context = "\n".join(err.candidates)
    elif context is not None:
        context = stderr_tail(context.encode("utf-8"), tail_lines)

    message = err.message
    if isinstance(err, BuildFailure):
        message = f"{message} (exit code {err.exit_code})"

    return Diagnostic(
        stage=err.stage,
        kind=err.kind,
        message=message,
        location=err.location or fallback,
        context=context or None,
        remediation=err.remediation if isinstance(err, ToolchainUnavailable) else None,
    )


def render(diag: Diagnostic) -> str:
    lines = [f"{diag.location}: error[{diag.kind}]: {diag.stage.value} failed: {diag.message}"]
    if diag.remediation:
        lines.append(f"  help: {diag.remediation}")
    if diag.context:
        lines.extend(f"  | {line}" for line in diag.context.splitlines())
    return "\n".join(lines)
