"""
Profile — the build profile every module is compiled with.

The profile holds all toolchain knobs so the command builder contains no
opinions.  The target triple is fixed: producing WebAssembly is the point.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from include_wasm.config import Settings
from include_wasm.core.model import Proposal

TARGET_TRIPLE = "wasm32-unknown-unknown"


@dataclass(frozen=True)
class Profile:
    """Describes how sub-projects are built."""

    profile_id: str
    target_triple: str
    toolchain: Optional[str]           # rustup override, e.g. "nightly"
    build_std: Optional[str]           # -Z build-std crates
    base_rustflags: Tuple[str, ...]
    feature_flags: Tuple[Tuple[Proposal, str], ...]

    def feature_flag(self, proposal: Proposal) -> str:
        return dict(self.feature_flags)[proposal]

    @classmethod
    def default(cls, settings: Optional[Settings] = None) -> "Profile":
        """The nightly wasm32 profile, with toolchain knobs from *settings*."""
        if settings is None:
            settings = Settings()
        return cls(
            profile_id="wasm32-nightly-build-std",
            target_triple=TARGET_TRIPLE,
            toolchain=settings.toolchain,
            build_std=settings.build_std,
            base_rustflags=("--cfg=web_sys_unstable_apis",),
            feature_flags=(
                (Proposal.ATOMICS, "+atomics"),
                (Proposal.BULK_MEMORY, "+bulk-memory"),
                (Proposal.MUTABLE_GLOBALS, "+mutable-globals"),
            ),
        )
