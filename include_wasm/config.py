"""
Orchestrator configuration
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Orchestrator settings, read from the process environment"""

    # Build tool
    INCLUDE_WASM_CARGO: str = "cargo"
    INCLUDE_WASM_TOOLCHAIN: str | None = "nightly"
    INCLUDE_WASM_BUILD_STD: str | None = "panic_abort,std"

    # Output isolation (None: inside the sub-project's own target/)
    INCLUDE_WASM_TARGET_ROOT: str | None = None

    # Diagnostics
    INCLUDE_WASM_STDERR_TAIL: int = 40

    @property
    def toolchain(self) -> str | None:
        """Toolchain override, or None when disabled by an empty value"""
        return self.INCLUDE_WASM_TOOLCHAIN or None

    @property
    def build_std(self) -> str | None:
        return self.INCLUDE_WASM_BUILD_STD or None

    # No env_file: results must not depend on the working directory.
    model_config = SettingsConfigDict(case_sensitive=True, extra="ignore")
