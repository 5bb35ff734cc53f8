"""
Command builder — BuildRequest → BuildCommand.

A pure function of its inputs: the request, the profile, the inherited
environment and the target root.  Equal inputs give equal commands, which
is what makes embedded bytes reproducible.

Layout of the isolated output directory:
    <target_root>/<mode>-<features>-<digest>/
where <target_root> defaults to <resolved>/target/include-wasm and
<digest> covers every field that changes the produced module.
"""
from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from include_wasm.core.manifest import MANIFEST_NAME
from include_wasm.core.model import BuildCommand, BuildRequest, canonical_proposals
from include_wasm.policy.profile import Profile

RUSTFLAGS = "RUSTFLAGS"

# Cargo prefers this over RUSTFLAGS, which would drop the generated flags.
SCRUBBED_ENV = ("CARGO_ENCODED_RUSTFLAGS",)

DEFAULT_TARGET_SUBDIR = Path("target") / "include-wasm"


def target_features(request: BuildRequest, profile: Profile) -> str:
    """Comma-separated ``-C target-feature`` value, empty when none enabled."""
    return ",".join(
        profile.feature_flag(p) for p in canonical_proposals(request.proposals)
    )


def rustflags(request: BuildRequest, profile: Profile) -> str:
    """RUSTFLAGS for the build: profile flags, features, then caller flags."""
    flags: List[str] = list(profile.base_rustflags)
    features = target_features(request, profile)
    if features:
        flags.append(f"-C target-feature={features}")
    extra = request.env.get(RUSTFLAGS)
    if extra:
        flags.append(extra)
    return " ".join(flags)


def config_digest(request: BuildRequest, profile: Profile) -> str:
    """Stable digest of everything that changes the produced module."""
    payload = {
        "profile": profile.profile_id,
        "target": profile.target_triple,
        "toolchain": profile.toolchain,
        "build_std": profile.build_std,
        "rustflags": list(profile.base_rustflags),
        "feature_flags": [[p.value, flag] for p, flag in profile.feature_flags],
        "path": str(request.resolved_path),
        "proposals": [p.value for p in canonical_proposals(request.proposals)],
        "release": request.release,
        "env": sorted(request.env_overrides),
    }
    blob = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(blob).hexdigest()


def isolated_target_dir(
    request: BuildRequest,
    profile: Profile,
    target_root: Optional[Path] = None,
) -> Path:
    """Output directory owned by this configuration of this sub-project."""
    if request.resolved_path is None:
        raise ValueError("request must be resolved before building a command")
    root = target_root if target_root is not None else request.resolved_path / DEFAULT_TARGET_SUBDIR
    proposals = canonical_proposals(request.proposals)
    features = "+".join(p.value for p in proposals) if proposals else "default"
    return root / f"{request.mode}-{features}-{config_digest(request, profile)[:16]}"


def merged_env(request: BuildRequest, profile: Profile, base_env: Mapping[str, str]) -> Dict[str, str]:
    """Inherited environment with the request's overrides on top."""
    env = {k: v for k, v in base_env.items() if k not in SCRUBBED_ENV}
    for name, value in request.env_overrides:
        if name != RUSTFLAGS:
            env[name] = value
    env[RUSTFLAGS] = rustflags(request, profile)
    return env


def build_command(
    request: BuildRequest,
    profile: Profile,
    *,
    executable: str = "cargo",
    base_env: Mapping[str, str],
    target_root: Optional[Path] = None,
) -> BuildCommand:
    """
    Map a resolved BuildRequest onto a concrete build-tool invocation.

    Raises ValueError if the request has not been resolved.
    """
    target_dir = isolated_target_dir(request, profile, target_root)
    resolved = request.resolved_path

    args: List[str] = []
    if profile.toolchain:
        args.append(f"+{profile.toolchain}")
    args += ["build", "--target", profile.target_triple]
    if profile.build_std:
        args += ["-Z", f"build-std={profile.build_std}"]
    args += [
        "--manifest-path", str(resolved / MANIFEST_NAME),
        "--target-dir", str(target_dir),
    ]
    if request.release:
        args.append("--release")

    env = merged_env(request, profile, base_env)
    return BuildCommand(
        executable=executable,
        args=tuple(args),
        env=tuple(sorted(env.items())),
        working_dir=resolved,
        target_dir=target_dir,
    )
