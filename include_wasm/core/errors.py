"""
Errors — the failure taxonomy of one expansion.

Every error is terminal for the invocation that raised it.  Stages raise
them without a location; the runner stamps the call-site location before
the error reaches Diagnostics.
"""
from __future__ import annotations

from enum import Enum, unique
from typing import Optional, Sequence

from include_wasm.core.model import SourceLocation


@unique
class Stage(str, Enum):
    PARSE = "parse"
    RESOLVE = "resolve"
    TOOLCHAIN = "toolchain"
    BUILD = "build"
    LOCATE = "locate"


class IncludeWasmError(Exception):
    """Base class for every pipeline failure."""

    stage: Stage = Stage.BUILD

    def __init__(
        self,
        message: str,
        *,
        location: Optional[SourceLocation] = None,
        context: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.location = location
        self.context = context

    @property
    def kind(self) -> str:
        return type(self).__name__


class ParseError(IncludeWasmError):
    stage = Stage.PARSE


class PathNotFound(IncludeWasmError):
    stage = Stage.RESOLVE


class NotAProject(IncludeWasmError):
    stage = Stage.RESOLVE


class ToolchainUnavailable(IncludeWasmError):
    """The build tool could not run, or the toolchain lacks a component."""

    stage = Stage.TOOLCHAIN

    def __init__(self, message: str, *, remediation: str, **kwargs):
        super().__init__(message, **kwargs)
        self.remediation = remediation


class BuildFailure(IncludeWasmError):
    """The build tool ran and exited nonzero."""

    stage = Stage.BUILD

    def __init__(
        self,
        message: str,
        *,
        exit_code: int,
        stdout: bytes = b"",
        stderr: bytes = b"",
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr


class ArtifactNotFound(IncludeWasmError):
    stage = Stage.LOCATE


class AmbiguousArtifact(IncludeWasmError):
    stage = Stage.LOCATE

    def __init__(self, message: str, *, candidates: Sequence[str], **kwargs):
        super().__init__(message, **kwargs)
        self.candidates = list(candidates)
