"""
test_resolver — sub-project resolution and manifest reading.

Resolution is relative to the invoking file and never to the working
directory; the manifest decides which ``.wasm`` stems count.
"""
from pathlib import Path

import pytest

from include_wasm.core.errors import NotAProject, PathNotFound, Stage
from include_wasm.core.manifest import read_manifest
from include_wasm.core.model import BuildRequest
from include_wasm.core.resolver import invoking_dir, resolve_path, resolve_project


class TestResolvePath:

    def test_relative_to_invoking_file(self, crate, host_file):
        resolved = resolve_path(Path("../fixtures/wasm_module"), host_file)
        assert resolved == crate.resolve()

    def test_independent_of_working_directory(self, crate, host_file, tmp_path, monkeypatch):
        source = Path("../fixtures/wasm_module")

        monkeypatch.chdir(tmp_path)
        first = resolve_path(source, host_file)
        monkeypatch.chdir(crate)
        second = resolve_path(source, host_file)

        assert first == second == crate.resolve()

    def test_invoking_dir_is_absolute(self, host_file):
        assert invoking_dir(host_file).is_absolute()
        assert invoking_dir(host_file) == host_file.parent.resolve()

    def test_missing_directory(self, host_file):
        with pytest.raises(PathNotFound, match="does not exist") as exc_info:
            resolve_path(Path("../fixtures/nope"), host_file)
        assert exc_info.value.stage is Stage.RESOLVE

    def test_file_is_not_a_directory(self, crate, host_file):
        with pytest.raises(PathNotFound, match="not a directory"):
            resolve_path(Path("../fixtures/wasm_module/Cargo.toml"), host_file)


class TestResolveProject:

    def test_sets_resolved_path_once(self, crate, host_file):
        request = BuildRequest(source_path="../fixtures/wasm_module")
        resolved, manifest = resolve_project(request, host_file)

        assert resolved.resolved_path == crate.resolve()
        assert resolved.source_path == request.source_path
        assert manifest.package_name == "wasm-module"
        with pytest.raises(ValueError, match="already set"):
            resolved.with_resolved(crate)

    def test_directory_without_manifest(self, project_root, host_file):
        (project_root / "fixtures" / "plain").mkdir()
        request = BuildRequest(source_path="../fixtures/plain")

        with pytest.raises(NotAProject, match="does not contain a `Cargo.toml`"):
            resolve_project(request, host_file)


class TestManifest:

    def test_cdylib_library(self, crate):
        manifest = read_manifest(crate)

        assert manifest.lib_name == "wasm_module"
        assert manifest.crate_types == ("cdylib",)
        assert manifest.bin_names == ()
        assert manifest.artifact_stems == {"wasm_module"}

    def test_plain_library_produces_nothing(self, tmp_path, make_crate):
        manifest = read_manifest(make_crate(tmp_path / "lib", cdylib=False))

        assert manifest.lib_name == "wasm_module"
        assert manifest.artifact_stems == frozenset()

    def test_main_binary(self, tmp_path, make_crate):
        manifest = read_manifest(make_crate(tmp_path / "app", "my-app", lib=False, main=True))

        assert manifest.lib_name is None
        # Binary stems keep the declared name.
        assert manifest.artifact_stems == {"my-app"}

    def test_explicit_and_discovered_bins(self, tmp_path, make_crate):
        crate_dir = make_crate(tmp_path / "tools", bins=("first",), main=True)
        (crate_dir / "src" / "bin").mkdir()
        (crate_dir / "src" / "bin" / "second.rs").write_text("fn main() {}\n")
        (crate_dir / "src" / "bin" / "third").mkdir()
        (crate_dir / "src" / "bin" / "third" / "main.rs").write_text("fn main() {}\n")

        manifest = read_manifest(crate_dir)

        assert manifest.bin_names == ("first", "wasm-module", "second", "third")
        assert manifest.artifact_stems == {"first", "wasm-module", "second", "third", "wasm_module"}

    def test_autobins_disabled(self, tmp_path):
        crate_dir = tmp_path / "quiet"
        (crate_dir / "src").mkdir(parents=True)
        (crate_dir / "src" / "main.rs").write_text("fn main() {}\n")
        (crate_dir / "Cargo.toml").write_text(
            '[package]\nname = "quiet"\nversion = "0.1.0"\nautobins = false\n'
        )
        assert read_manifest(crate_dir).bin_names == ()

    def test_lib_name_override(self, tmp_path):
        crate_dir = tmp_path / "renamed"
        crate_dir.mkdir()
        (crate_dir / "Cargo.toml").write_text(
            '[package]\nname = "outer"\nversion = "0.1.0"\n\n'
            '[lib]\nname = "inner-core"\ncrate-type = ["cdylib", "rlib"]\n'
        )
        manifest = read_manifest(crate_dir)

        assert manifest.lib_name == "inner_core"
        assert manifest.artifact_stems == {"inner_core"}

    def test_workspace_root(self, tmp_path):
        (tmp_path / "Cargo.toml").write_text('[workspace]\nmembers = ["a", "b"]\n')
        with pytest.raises(NotAProject, match="workspace"):
            read_manifest(tmp_path)

    def test_invalid_toml(self, tmp_path):
        (tmp_path / "Cargo.toml").write_text("[package\nname = ")
        with pytest.raises(NotAProject, match="not valid TOML"):
            read_manifest(tmp_path)

    @pytest.mark.parametrize("text, fragment", [
        ('[package]\nname = "x"\n\n[lib]\ncrate-type = 5\n', r"invalid \[lib\] crate-type"),
        ('[package]\nname = "x"\n\n[lib]\ncrate-type = ["cdylib", 1]\n', r"invalid \[lib\] crate-type"),
        ('bin = 5\n\n[package]\nname = "x"\n', r"invalid \[\[bin\]\] section"),
        ('[package]\nname = "x"\n\n[bin]\nname = "app"\n', r"invalid \[\[bin\]\] section"),
        ('[package]\nname = "x"\n\n[[bin]]\npath = "src/app.rs"\n', "without a name"),
    ])
    def test_malformed_targets(self, tmp_path, text, fragment):
        (tmp_path / "Cargo.toml").write_text(text)
        with pytest.raises(NotAProject, match=fragment):
            read_manifest(tmp_path)

    def test_missing_package_name(self, tmp_path):
        (tmp_path / "Cargo.toml").write_text('[package]\nversion = "0.1.0"\n')
        with pytest.raises(NotAProject, match="package name"):
            read_manifest(tmp_path)
