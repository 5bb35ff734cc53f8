"""
include_wasm — build a Cargo sub-project to WebAssembly at build time and
splice the module bytes into a host Python source as a constant.

Host sources mark call sites with ``build_wasm(...)``; running
``include-wasm expand`` replaces every call site with a ``bytes`` literal.
"""

__version__ = "0.1.0"
PACKAGE_NAME = "include_wasm"
SCHEMA_VERSION = "0.1"
ENTRY_POINT = "build_wasm"


def build_wasm(*args, **kwargs):
    """
    Marker for a WebAssembly module embedded at build time.

    ``include-wasm expand`` replaces every call with the bytes of the built
    module, so reaching this function means the source was never expanded.
    """
    raise RuntimeError(
        "build_wasm() is replaced at build time; run `include-wasm expand` "
        "on this file and import the expanded output instead"
    )
