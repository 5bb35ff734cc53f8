"""
Shared pytest fixtures for include_wasm tests.

Provides throwaway Cargo sub-projects and a fake ``cargo`` executable, so
the whole pipeline runs without a Rust toolchain.

The fake cargo:
  - appends one JSON line per call (argv, cwd, environment) to the file
    named by ``FAKE_CARGO_LOG``;
  - reads ``fake_cargo.json`` next to the manifest for its script:
      exit_code  (int, default 0)
      stderr     (str, written before a nonzero exit)
      outputs    (list of stems to emit, default: package name, ``-`` → ``_``)
      payload    (hex string, default: the 8-byte empty-module header)
  - writes ``<target-dir>/<target>/<debug|release>/<stem>.wasm``.

Tests that spawn it are skipped on Windows (shebang scripts).
"""
from __future__ import annotations

import json
import os
import platform
import stat
import sys
import textwrap
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

from include_wasm.config import Settings

FAKE_CARGO = textwrap.dedent("""\
    import json
    import os
    import sys
    import tomllib
    from pathlib import Path

    argv = sys.argv[1:]

    def value(flag):
        return argv[argv.index(flag) + 1] if flag in argv else None

    log = os.environ.get("FAKE_CARGO_LOG")
    if log:
        with open(log, "a", encoding="utf-8") as fh:
            fh.write(json.dumps({"argv": argv, "cwd": os.getcwd(), "env": dict(os.environ)}) + "\\n")

    manifest = Path(value("--manifest-path"))
    script_path = manifest.parent / "fake_cargo.json"
    script = json.loads(script_path.read_text()) if script_path.exists() else {}

    if script.get("exit_code", 0):
        sys.stderr.write(script.get("stderr", ""))
        sys.exit(script["exit_code"])

    with open(manifest, "rb") as fh:
        package = tomllib.load(fh)["package"]["name"]
    outputs = script.get("outputs", [package.replace("-", "_")])
    payload = bytes.fromhex(script.get("payload", "0061736d01000000"))

    mode = "release" if "--release" in argv else "debug"
    out = Path(value("--target-dir")) / value("--target") / mode
    out.mkdir(parents=True, exist_ok=True)
    (out / "deps").mkdir(exist_ok=True)
    for stem in outputs:
        (out / f"{stem}.wasm").write_bytes(payload)
    sys.stderr.write("   Compiling %s v0.1.0\\n    Finished\\n" % package)
""")


# ── Sub-projects ─────────────────────────────────────────────────────────────

def write_crate(
    crate_dir: Path,
    name: str = "wasm-module",
    *,
    cdylib: bool = True,
    lib: bool = True,
    main: bool = False,
    bins: Sequence[str] = (),
    script: Optional[Dict] = None,
) -> Path:
    """Create a minimal Cargo package in *crate_dir*."""
    src = crate_dir / "src"
    src.mkdir(parents=True, exist_ok=True)

    manifest = f'[package]\nname = "{name}"\nversion = "0.1.0"\nedition = "2021"\n'
    if lib:
        (src / "lib.rs").write_text("#[no_mangle]\npub extern \"C\" fn answer() -> u32 { 42 }\n")
        if cdylib:
            manifest += '\n[lib]\ncrate-type = ["cdylib"]\n'
    if main:
        (src / "main.rs").write_text("fn main() {}\n")
    for bin_name in bins:
        (src / f"{bin_name}.rs").write_text("fn main() {}\n")
        manifest += f'\n[[bin]]\nname = "{bin_name}"\npath = "src/{bin_name}.rs"\n'
    (crate_dir / "Cargo.toml").write_text(manifest)

    if script is not None:
        (crate_dir / "fake_cargo.json").write_text(json.dumps(script))
    return crate_dir


@pytest.fixture
def project_root(tmp_path) -> Path:
    """Root of a host project: tests/ holds host files, fixtures/ holds crates."""
    root = tmp_path / "project"
    (root / "tests").mkdir(parents=True)
    (root / "fixtures").mkdir()
    return root


@pytest.fixture
def crate(project_root) -> Path:
    """A cdylib crate named ``wasm-module`` at fixtures/wasm_module."""
    return write_crate(project_root / "fixtures" / "wasm_module")


@pytest.fixture
def host_file(project_root) -> Path:
    """Path of a host source in tests/ (content written by each test)."""
    return project_root / "tests" / "test_embedded.py"


# ── Fake cargo ───────────────────────────────────────────────────────────────

@pytest.fixture(scope="session")
def fake_cargo(tmp_path_factory) -> Path:
    """Executable fake cargo; skips on Windows."""
    if platform.system() == "Windows":
        pytest.skip("the fake cargo is a shebang script; run these tests on a POSIX system")
    path = tmp_path_factory.mktemp("bin") / "cargo"
    path.write_text(f"#!{sys.executable}\n" + FAKE_CARGO)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def cargo_log(tmp_path) -> Path:
    return tmp_path / "cargo_calls.jsonl"


@pytest.fixture
def base_env(cargo_log) -> Dict[str, str]:
    """Inherited environment handed to the build."""
    return {"PATH": os.environ.get("PATH", ""), "FAKE_CARGO_LOG": str(cargo_log)}


@pytest.fixture
def settings(fake_cargo) -> Settings:
    return Settings(
        INCLUDE_WASM_CARGO=str(fake_cargo),
        INCLUDE_WASM_TOOLCHAIN="nightly",
        INCLUDE_WASM_BUILD_STD="panic_abort,std",
        INCLUDE_WASM_TARGET_ROOT=None,
        INCLUDE_WASM_STDERR_TAIL=40,
    )


def read_calls(log: Path) -> List[dict]:
    """Calls recorded by the fake cargo, oldest first."""
    if not log.exists():
        return []
    return [json.loads(line) for line in log.read_text().splitlines() if line.strip()]


@pytest.fixture
def make_crate():
    """Factory fixture around ``write_crate``."""
    return write_crate


@pytest.fixture
def cargo_calls(cargo_log):
    """Callable returning the fake cargo's recorded calls."""
    return lambda: read_calls(cargo_log)
