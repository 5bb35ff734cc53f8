"""
Embedder — module bytes → constant expression, spliced into the host.

The expression is a parenthesised concatenation of ``b"\\x.."`` chunks.
It evaluates to exactly the artifact's bytes and is valid wherever an
expression may appear, including inside other calls.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from include_wasm.core.model import Artifact

BYTES_PER_LINE = 16


def bytes_literal(data: bytes, indent: str = "    ") -> str:
    """Render *data* as a Python expression of type ``bytes``."""
    if not data:
        return 'b""'
    chunks = [
        'b"' + "".join(f"\\x{b:02x}" for b in data[i:i + BYTES_PER_LINE]) + '"'
        for i in range(0, len(data), BYTES_PER_LINE)
    ]
    if len(chunks) == 1:
        return chunks[0]
    return "(\n" + "\n".join(indent + c for c in chunks) + "\n)"


def embed(artifact: Artifact) -> str:
    """Constant expression for *artifact*; bytes are never transformed."""
    return bytes_literal(artifact.data)


# ── Splicing ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Edit:
    """Replace a span of the host source.

    Lines are 1-based; columns are 0-based UTF-8 byte offsets, as reported
    by ``ast`` nodes.
    """
    start_line: int
    start_col: int
    end_line: int
    end_col: int
    text: str


def _line_starts(data: bytes) -> List[int]:
    starts = [0]
    pos = data.find(b"\n")
    while pos != -1:
        starts.append(pos + 1)
        pos = data.find(b"\n", pos + 1)
    return starts


def splice(source: str, edits: Sequence[Edit]) -> str:
    """
    Apply non-overlapping *edits* to *source*.

    Raises ValueError if two edits overlap.
    """
    data = source.encode("utf-8")
    starts = _line_starts(data)
    spans = sorted(
        (starts[e.start_line - 1] + e.start_col, starts[e.end_line - 1] + e.end_col, e.text)
        for e in edits
    )
    for (_, prev_end, _), (start, _, _) in zip(spans, spans[1:]):
        if start < prev_end:
            raise ValueError("overlapping call sites cannot be spliced")

    out = data
    for start, end, text in reversed(spans):
        out = out[:start] + text.encode("utf-8") + out[end:]
    return out.decode("utf-8")
