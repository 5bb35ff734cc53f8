"""
Manifest reader — what a Cargo sub-project declares about itself.

Responsibilities:
  - Confirm the directory holds a buildable package (not a bare workspace).
  - Derive the file stems Cargo gives ``.wasm`` outputs on the wasm target.

Cargo only emits a ``.wasm`` for a library when its crate types include
``cdylib``; binaries always produce one.  Library stems replace ``-`` with
``_``; binary stems keep the declared name.
"""
from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Optional, Tuple

from include_wasm.core.errors import NotAProject

MANIFEST_NAME = "Cargo.toml"


@dataclass(frozen=True)
class ProjectManifest:
    """The parts of ``Cargo.toml`` that determine artifact names."""

    path: Path
    package_name: str
    lib_name: Optional[str] = None
    crate_types: Tuple[str, ...] = ()
    bin_names: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def artifact_stems(self) -> FrozenSet[str]:
        stems = set(self.bin_names)
        if self.lib_name is not None and "cdylib" in self.crate_types:
            stems.add(self.lib_name)
        return frozenset(stems)


def read_manifest(project_dir: Path) -> ProjectManifest:
    """
    Read ``Cargo.toml`` in *project_dir*.

    Raises
    ------
    NotAProject
        If the manifest is missing, unreadable, malformed, or describes a
        workspace rather than a package.
    """
    manifest_path = project_dir / MANIFEST_NAME
    if not manifest_path.is_file():
        raise NotAProject(
            f"target directory `{project_dir}` does not contain a `{MANIFEST_NAME}` file"
        )

    try:
        with open(manifest_path, "rb") as fh:
            data = tomllib.load(fh)
    except OSError as exc:
        raise NotAProject(f"failed to read `{manifest_path}`: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise NotAProject(f"`{manifest_path}` is not valid TOML: {exc}") from exc

    package = data.get("package")
    if not isinstance(package, dict):
        if "workspace" in data:
            raise NotAProject(
                f"`{project_dir}` points to a workspace, not a package; "
                "point at one of its member crates instead"
            )
        raise NotAProject(f"`{manifest_path}` has no [package] table")

    name = package.get("name")
    if not isinstance(name, str) or not name:
        raise NotAProject(f"`{manifest_path}` does not declare a package name")

    return ProjectManifest(
        path=manifest_path,
        package_name=name,
        lib_name=_lib_name(data, name, project_dir),
        crate_types=_crate_types(data, manifest_path),
        bin_names=_bin_names(data, package, name, manifest_path),
    )


def _lib_name(data: dict, package_name: str, project_dir: Path) -> Optional[str]:
    lib = data.get("lib")
    if isinstance(lib, dict):
        declared = lib.get("name")
        return (declared if isinstance(declared, str) else package_name).replace("-", "_")
    lib_path = project_dir / "src" / "lib.rs"
    if lib_path.is_file():
        return package_name.replace("-", "_")
    return None


def _crate_types(data: dict, manifest_path: Path) -> Tuple[str, ...]:
    lib = data.get("lib")
    if not isinstance(lib, dict):
        return ()
    types = lib.get("crate-type", lib.get("crate_type", []))
    if isinstance(types, str):
        types = [types]
    if not isinstance(types, list) or not all(isinstance(t, str) for t in types):
        raise NotAProject(f"`{manifest_path}` has an invalid [lib] crate-type")
    return tuple(types)


def _bin_names(data: dict, package: dict, package_name: str, manifest_path: Path) -> Tuple[str, ...]:
    project_dir = manifest_path.parent
    bins = data.get("bin", [])
    if not isinstance(bins, list):
        raise NotAProject(f"`{manifest_path}` has an invalid [[bin]] section")

    names = []
    for entry in bins:
        if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
            raise NotAProject(f"`{manifest_path}` has a [[bin]] target without a name")
        names.append(entry["name"])

    if package.get("autobins", True):
        if (project_dir / "src" / "main.rs").is_file():
            names.append(package_name)
        bin_dir = project_dir / "src" / "bin"
        if bin_dir.is_dir():
            for path in sorted(bin_dir.iterdir()):
                if path.suffix == ".rs" and path.is_file():
                    names.append(path.stem)
                elif (path / "main.rs").is_file():
                    names.append(path.name)

    # Explicit [[bin]] entries may repeat an auto-discovered target.
    return tuple(dict.fromkeys(names))
