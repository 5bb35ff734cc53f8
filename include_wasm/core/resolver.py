"""
Path resolver — locate the sub-project relative to the invoking file.

Resolution never consults the process working directory: the same source
tree resolves identically no matter where the host build is started.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Tuple, Union

from include_wasm.core.errors import PathNotFound
from include_wasm.core.manifest import ProjectManifest, read_manifest
from include_wasm.core.model import BuildRequest

logger = logging.getLogger(__name__)


def invoking_dir(invoking_file: Union[str, Path]) -> Path:
    """Absolute directory of the file that contains the call site."""
    return Path(invoking_file).resolve().parent


def resolve_path(source_path: Path, invoking_file: Union[str, Path]) -> Path:
    """Absolute sub-project directory for *source_path*.

    Raises PathNotFound if it does not exist or is not a directory.
    """
    resolved = (invoking_dir(invoking_file) / source_path).resolve()
    if not resolved.exists():
        raise PathNotFound(
            f"module directory `{resolved}` does not exist "
            f"(`{source_path}` relative to `{invoking_dir(invoking_file)}`)"
        )
    if not resolved.is_dir():
        raise PathNotFound(f"`{resolved}` is not a directory")
    return resolved


def resolve_project(
    request: BuildRequest,
    invoking_file: Union[str, Path],
) -> Tuple[BuildRequest, ProjectManifest]:
    """
    Resolve *request* against *invoking_file* and read its manifest.

    Returns the request with ``resolved_path`` set, and the manifest.
    """
    resolved = resolve_path(request.source_path, invoking_file)
    manifest = read_manifest(resolved)
    logger.debug("Resolved %s -> %s (package %s)", request.source_path, resolved, manifest.package_name)
    return request.with_resolved(resolved), manifest
