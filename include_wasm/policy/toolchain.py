"""
Toolchain — recognise missing-toolchain failures and say how to fix them.

A build that fails because the nightly channel, the wasm target or the
``rust-src`` component is absent is an environment problem, not a code
problem; it is reported as ToolchainUnavailable with a remediation.
"""
from __future__ import annotations

import re
from typing import Optional

from include_wasm.policy.profile import Profile


def install_hint(profile: Profile) -> str:
    """Full remediation for a machine without the required toolchain."""
    channel = profile.toolchain or "nightly"
    return (
        "install Rust with rustup (https://rustup.rs), then run "
        f"`rustup toolchain install {channel} --target {profile.target_triple} "
        "--component rust-src`"
    )


def diagnose_failure(stderr: str, profile: Profile) -> Optional[str]:
    """
    Return remediation text if *stderr* shows a missing toolchain piece,
    else None.
    """
    channel = profile.toolchain or "nightly"

    m = re.search(r"toolchain '([^']+)' is not installed", stderr)
    if m:
        return f"run `rustup toolchain install {channel}` (missing toolchain `{m.group(1)}`)"

    if re.search(r"target may not be installed", stderr):
        return (
            f"run `rustup target add {profile.target_triple} --toolchain {channel}`"
        )

    if re.search(r"unable to build with the standard library", stderr) or re.search(
        r"rustup component add rust-src", stderr
    ):
        return f"run `rustup component add rust-src --toolchain {channel}`"

    if re.search(r"no such (sub)?command: `?\+", stderr):
        return (
            "toolchain overrides like `+nightly` need rustup; "
            + install_hint(profile)
        )

    if re.search(r"only accepted on the nightly channel", stderr):
        return (
            f"`-Z build-std` needs a nightly toolchain; run `rustup toolchain install {channel}` "
            "or set INCLUDE_WASM_TOOLCHAIN to a nightly channel"
        )

    return None
