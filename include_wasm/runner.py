"""
Runner — top-level orchestration: call site → module bytes → expanded host.

Ties the parser, resolver, command builder, invoker, locator and embedder
into ``run_invocation`` (one call site) and ``expand_file`` (every call
site of one host file), and exposes both through a CLI:

    include-wasm expand tests/test_runtime.py -o build/test_runtime.py
    include-wasm build 'path="fixtures/echo", release=True' --from tests/test_runtime.py -o echo.wasm
"""
from __future__ import annotations

import argparse
import ast
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional, Tuple, Union

from include_wasm.config import Settings
from include_wasm.core.command import build_command
from include_wasm.core.diagnostics import Diagnostic, from_error, render
from include_wasm.core.embedder import Edit, embed, splice
from include_wasm.core.errors import BuildFailure, IncludeWasmError, ToolchainUnavailable
from include_wasm.core.invocation import (
    Origin,
    find_call_sites,
    parse_host,
    parse_invocation,
    request_from_call,
)
from include_wasm.core.invoker import run_build
from include_wasm.core.locator import locate_artifact, read_artifact
from include_wasm.core.model import (
    Artifact,
    BuildCommand,
    BuildFailed,
    BuildRequest,
    SourceLocation,
    canonical_proposals,
)
from include_wasm.core.resolver import resolve_project
from include_wasm.core.sources import collect_module_files, fingerprint
from include_wasm.io.schema import ArtifactRecord, ExpansionReceipt, InvocationRecord
from include_wasm.io.writer import write_depfile, write_expanded, write_receipt
from include_wasm.policy.profile import Profile
from include_wasm.policy.toolchain import diagnose_failure

logger = logging.getLogger(__name__)


@dataclass
class Expansion:
    """Everything produced for one call site."""

    request: BuildRequest
    command: BuildCommand
    artifact: Artifact
    expression: str
    module_files: List[Path]
    module_fingerprint: str
    duration_ms: int = 0

    def record(self) -> InvocationRecord:
        return InvocationRecord(
            location=str(self.request.location),
            source_path=str(self.request.source_path),
            resolved_path=str(self.request.resolved_path),
            proposals=[p.value for p in canonical_proposals(self.request.proposals)],
            release=self.request.release,
            env_names=[name for name, _ in self.request.env_overrides],
            command=self.command.argv(),
            target_dir=str(self.command.target_dir),
            duration_ms=self.duration_ms,
            artifact=ArtifactRecord(
                path=str(self.artifact.path),
                sha256=self.artifact.sha256,
                size_bytes=self.artifact.size,
            ),
            module_fingerprint=self.module_fingerprint,
            module_files=len(self.module_files),
        )


@dataclass
class HostExpansion:
    """Result of expanding one host file."""

    host_file: Path
    source: Optional[str] = None
    expansions: List[Expansion] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.diagnostics


# ── One call site ────────────────────────────────────────────────────────────

def run_invocation(
    request: BuildRequest,
    invoking_file: Union[str, Path],
    *,
    settings: Optional[Settings] = None,
    profile: Optional[Profile] = None,
    base_env: Optional[Mapping[str, str]] = None,
) -> Expansion:
    """
    Build the module *request* names and return its embedded expression.

    Raises an IncludeWasmError subclass, located at the call site, for any
    failure.
    """
    if settings is None:
        settings = Settings()
    if profile is None:
        profile = Profile.default(settings)
    if base_env is None:
        base_env = os.environ

    try:
        request, manifest = resolve_project(request, invoking_file)
        target_root = (
            Path(settings.INCLUDE_WASM_TARGET_ROOT) if settings.INCLUDE_WASM_TARGET_ROOT else None
        )
        command = build_command(
            request,
            profile,
            executable=settings.INCLUDE_WASM_CARGO,
            base_env=base_env,
            target_root=target_root,
        )
        outcome = run_build(command, profile)

        if isinstance(outcome, BuildFailed):
            stderr = outcome.stderr.decode("utf-8", errors="replace")
            remediation = diagnose_failure(stderr, profile)
            if remediation is not None:
                raise ToolchainUnavailable(
                    f"the toolchain cannot build for `{profile.target_triple}`",
                    remediation=remediation,
                    context=stderr,
                )
            raise BuildFailure(
                f"failed to build module `{request.resolved_path}`",
                exit_code=outcome.exit_code,
                stdout=outcome.stdout,
                stderr=outcome.stderr,
            )

        artifact = read_artifact(locate_artifact(outcome, manifest, request, profile))
    except IncludeWasmError as err:
        if err.location is None:
            err.location = request.location
        raise

    module_files = collect_module_files(request.resolved_path)
    return Expansion(
        request=request,
        command=command,
        artifact=artifact,
        expression=embed(artifact),
        module_files=module_files,
        module_fingerprint=fingerprint(request.resolved_path, module_files),
        duration_ms=outcome.duration_ms,
    )


def build_wasm_bytes(
    arguments: str,
    *,
    invoking_file: Union[str, Path],
    settings: Optional[Settings] = None,
) -> bytes:
    """Parse *arguments* as written inside ``build_wasm(...)`` and build it."""
    request = parse_invocation(arguments, file=invoking_file)
    return run_invocation(request, invoking_file, settings=settings).artifact.data


# ── One host file ────────────────────────────────────────────────────────────

def expand_source(
    source: str,
    host_file: Union[str, Path],
    *,
    settings: Optional[Settings] = None,
    base_env: Optional[Mapping[str, str]] = None,
) -> HostExpansion:
    """
    Replace every call site in *source* with its module bytes.

    All call sites are parsed before anything is built, so malformed
    invocations fail without spawning a build.  On any failure the result
    carries one diagnostic per failed call site and no expanded source.
    """
    if settings is None:
        settings = Settings()
    host_file = Path(host_file)
    result = HostExpansion(host_file=host_file)
    tail = settings.INCLUDE_WASM_STDERR_TAIL
    origin = Origin.for_source(host_file, source)

    try:
        tree = parse_host(source, file=host_file)
    except IncludeWasmError as err:
        result.diagnostics.append(from_error(err, SourceLocation(str(host_file), 1, 1), tail))
        return result

    calls = find_call_sites(tree)
    if not calls:
        logger.warning("No build_wasm() call sites in %s", host_file)

    parsed: List[Tuple[ast.Call, BuildRequest]] = []
    for call in calls:
        try:
            parsed.append((call, request_from_call(call, origin)))
        except IncludeWasmError as err:
            result.diagnostics.append(from_error(err, origin.locate(call), tail))
    if result.diagnostics:
        return result

    edits: List[Edit] = []
    for call, request in parsed:
        try:
            expansion = run_invocation(request, host_file, settings=settings, base_env=base_env)
        except IncludeWasmError as err:
            result.diagnostics.append(from_error(err, origin.locate(call), tail))
            continue
        result.expansions.append(expansion)
        edits.append(Edit(
            start_line=call.lineno,
            start_col=call.col_offset,
            end_line=call.end_lineno,
            end_col=call.end_col_offset,
            text=expansion.expression,
        ))

    if result.diagnostics:
        return result

    result.source = splice(source, edits)
    return result


def default_output(host_file: Path) -> Path:
    return host_file.with_name(f"{host_file.stem}_expanded{host_file.suffix}")


def expand_file(
    host_file: Union[str, Path],
    output: Optional[Path] = None,
    *,
    depfile: Optional[Path] = None,
    receipt: Optional[Path] = None,
    settings: Optional[Settings] = None,
    base_env: Optional[Mapping[str, str]] = None,
) -> HostExpansion:
    """
    Expand *host_file* and write the result to *output*.

    Nothing is written when any call site fails.
    """
    host_file = Path(host_file).resolve()
    output = Path(output) if output is not None else default_output(host_file)

    source = host_file.read_text(encoding="utf-8")
    result = expand_source(source, host_file, settings=settings, base_env=base_env)
    if not result.ok:
        return result

    write_expanded(output, result.source)
    logger.info(
        "Expanded %d call site(s) in %s -> %s", len(result.expansions), host_file, output
    )

    if depfile is not None:
        deps = [host_file] + [p for e in result.expansions for p in e.module_files]
        write_depfile(depfile, output, deps)

    if receipt is not None:
        write_receipt(receipt, ExpansionReceipt(
            host_file=str(host_file),
            output_file=str(output),
            invocations=[e.record() for e in result.expansions],
        ))

    return result


# ── CLI ──────────────────────────────────────────────────────────────────────

def _cmd_expand(args: argparse.Namespace, settings: Settings) -> int:
    status = 0
    for host in args.hosts:
        try:
            result = expand_file(
                host,
                args.output,
                depfile=args.depfile,
                receipt=args.receipt,
                settings=settings,
            )
        except OSError as exc:
            print(f"{host}: error: cannot expand: {exc}", file=sys.stderr)
            status = 1
            continue
        for diag in result.diagnostics:
            print(render(diag), file=sys.stderr)
        if not result.ok:
            status = 1
    return status


def _cmd_build(args: argparse.Namespace, settings: Settings) -> int:
    invoking_file = args.from_file.resolve()
    try:
        request = parse_invocation(args.arguments, file=invoking_file)
        expansion = run_invocation(request, invoking_file, settings=settings)
    except IncludeWasmError as err:
        fallback = SourceLocation(str(invoking_file), 1, 1)
        print(render(from_error(err, fallback, settings.INCLUDE_WASM_STDERR_TAIL)), file=sys.stderr)
        return 1

    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_bytes(expansion.artifact.data)
        print(f"{args.output} ({expansion.artifact.size} bytes, sha256 {expansion.artifact.sha256})")
    else:
        print(expansion.expression)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for include-wasm."""
    parser = argparse.ArgumentParser(
        prog="include-wasm",
        description="include-wasm — build Cargo sub-projects to WebAssembly and embed the bytes",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_expand = sub.add_parser("expand", help="Replace build_wasm() call sites with module bytes")
    p_expand.add_argument("hosts", nargs="+", type=Path, help="Host Python source files")
    p_expand.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Expanded output (single host only; default <stem>_expanded.py)",
    )
    p_expand.add_argument("--depfile", type=Path, default=None, help="Write a Make-style depfile")
    p_expand.add_argument("--receipt", type=Path, default=None, help="Write a JSON expansion receipt")

    p_build = sub.add_parser("build", help="Build one invocation and output its bytes")
    p_build.add_argument("arguments", help='Invocation arguments, e.g. \'path="module", release=True\'')
    p_build.add_argument(
        "--from",
        dest="from_file",
        type=Path,
        required=True,
        help="File the path is relative to",
    )
    p_build.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Write the raw module here instead of printing the expression",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "expand" and len(args.hosts) > 1 and (
        args.output or args.depfile or args.receipt
    ):
        parser.error("-o, --depfile and --receipt need a single host file")

    settings = Settings()
    if args.command == "expand":
        return _cmd_expand(args, settings)
    return _cmd_build(args, settings)


if __name__ == "__main__":
    raise SystemExit(main())
