"""
Artifact locator — find the one module a successful build produced.

Only ``<target_dir>/<triple>/<debug|release>/*.wasm`` is searched, and only
files whose stem the manifest declares count.  Zero or several matches are
errors: picking the newest or the first would make embedded bytes depend
on leftovers in the output directory.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from include_wasm.core.errors import AmbiguousArtifact, ArtifactNotFound
from include_wasm.core.manifest import ProjectManifest
from include_wasm.core.model import Artifact, BuildRequest, BuildSucceeded
from include_wasm.policy.profile import Profile

logger = logging.getLogger(__name__)

WASM_MAGIC = b"\x00asm"


def output_dir(outcome: BuildSucceeded, request: BuildRequest, profile: Profile) -> Path:
    return outcome.target_dir / profile.target_triple / request.mode


def locate_artifact(
    outcome: BuildSucceeded,
    manifest: ProjectManifest,
    request: BuildRequest,
    profile: Profile,
) -> Path:
    """
    Return the path of the single matching ``.wasm`` file.

    Raises
    ------
    ArtifactNotFound
        No declared target produced a module (e.g. a library without
        ``crate-type = ["cdylib"]``).
    AmbiguousArtifact
        More than one declared target produced a module.
    """
    out = output_dir(outcome, request, profile)
    found: List[Path] = sorted(p for p in out.glob("*.wasm") if p.is_file())
    expected = manifest.artifact_stems
    matches = [p for p in found if p.stem in expected]

    if not matches:
        message = f"build succeeded but no module for `{manifest.package_name}` was found in `{out}`"
        if not expected:
            message += (
                "; the package declares no binary and its library is not a cdylib "
                "(add `crate-type = [\"cdylib\"]` under [lib])"
            )
        else:
            message += f"; expected one of: {', '.join(sorted(s + '.wasm' for s in expected))}"
        if found:
            message += f"; other modules present: {', '.join(p.name for p in found)}"
        raise ArtifactNotFound(message)

    if len(matches) > 1:
        names = [p.name for p in matches]
        raise AmbiguousArtifact(
            f"multiple modules matching `{manifest.package_name}` were found in `{out}`: "
            f"{', '.join(names)}; point at a package with a single cdylib or binary target",
            candidates=[str(p) for p in matches],
        )

    logger.debug("Located artifact %s", matches[0])
    return matches[0]


def read_artifact(path: Path) -> Artifact:
    """Read the located module once."""
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ArtifactNotFound(f"failed to read module `{path}`: {exc}") from exc
    if not data.startswith(WASM_MAGIC):
        logger.warning("%s does not start with the WebAssembly magic number", path)
    return Artifact(path=path, data=data)
