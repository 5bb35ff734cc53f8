"""
Invocation parser — ``build_wasm(...)`` arguments → BuildRequest.

Two shapes are accepted:

    build_wasm("relative/path/to/module")

    build_wasm(
        path="relative/path/to/module",
        features=[atomics, bulk_memory, mutable_globals],
        env=Env(FOO="bar", BAX=7),          # or {"FOO": "bar", "BAX": 7}
        release=True,
    )

Every rejection is a ParseError anchored at the offending node.  Parsing
has no side effects: nothing is resolved, built or read here.
"""
from __future__ import annotations

import ast
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from include_wasm import ENTRY_POINT
from include_wasm.core.errors import ParseError
from include_wasm.core.model import BuildRequest, Proposal, SourceLocation

FIELDS = ("path", "features", "env", "release")
ENV_CONSTRUCTOR = "Env"

_PROPOSALS: Dict[str, Proposal] = {p.value: p for p in Proposal}


# ── Location mapping ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Origin:
    """Where the parsed text starts in its file.

    ``prefix`` is the number of characters prepended to the first line
    before handing the text to ``ast`` (the ``build_wasm(`` wrapper).
    ``lines`` holds the parsed text as UTF-8 lines; without it node
    offsets are taken to be ASCII.
    """
    file: str
    line: int = 1
    column: int = 1
    prefix: int = 0
    lines: Tuple[bytes, ...] = field(default=(), repr=False, compare=False)

    @classmethod
    def for_source(cls, file: Union[str, Path], source: str, **kwargs) -> "Origin":
        return cls(str(file), lines=tuple(source.encode("utf-8").split(b"\n")), **kwargs)

    def locate(self, node: Optional[ast.AST]) -> SourceLocation:
        lineno = getattr(node, "lineno", 1) or 1
        col = getattr(node, "col_offset", 0) or 0
        return self.at(lineno, self.char_offset(lineno, col))

    def char_offset(self, lineno: int, col_offset: int) -> int:
        """Convert an ``ast`` UTF-8 byte offset into a character offset."""
        if not 0 < lineno <= len(self.lines):
            return col_offset
        return len(self.lines[lineno - 1][:col_offset].decode("utf-8", errors="replace"))

    def at(self, lineno: int, col_offset: int) -> SourceLocation:
        """Location of a 1-based line and 0-based character offset."""
        if lineno == 1:
            return SourceLocation(
                self.file, self.line, self.column + max(col_offset - self.prefix, 0)
            )
        return SourceLocation(self.file, self.line + lineno - 1, col_offset + 1)


def _error(origin: Origin, node: Optional[ast.AST], message: str) -> ParseError:
    return ParseError(message, location=origin.locate(node))


# ── Entry points ─────────────────────────────────────────────────────────────

def parse_invocation(
    arguments: str,
    *,
    file: Union[str, Path],
    line: int = 1,
    column: int = 1,
) -> BuildRequest:
    """
    Parse the text between the parentheses of a ``build_wasm(...)`` call.

    *line* and *column* give the position of the first character of
    *arguments* in *file*, so errors point at the host file.
    """
    wrapper = f"{ENTRY_POINT}("
    text = f"{wrapper}{arguments}\n)"
    origin = Origin.for_source(file, text, line=line, column=column, prefix=len(wrapper))
    try:
        tree = ast.parse(text, mode="eval")
    except SyntaxError as exc:
        location = origin.at(exc.lineno or 1, (exc.offset or 1) - 1)
        raise ParseError(f"malformed invocation: {exc.msg}", location=location) from exc

    # Arguments that close the wrapper early parse as some other expression.
    call = tree.body
    if not (
        isinstance(call, ast.Call)
        and isinstance(call.func, ast.Name)
        and call.func.id == ENTRY_POINT
        and call.func.col_offset == 0
    ):
        raise ParseError(
            "malformed invocation: arguments must not close the call",
            location=origin.at(1, len(wrapper)),
        )
    return request_from_call(call, origin)


def parse_host(source: str, *, file: Union[str, Path]) -> ast.Module:
    """Parse a whole host source file; syntax errors become ParseError."""
    try:
        return ast.parse(source, filename=str(file))
    except SyntaxError as exc:
        location = Origin(str(file)).at(exc.lineno or 1, (exc.offset or 1) - 1)
        raise ParseError(f"host source does not parse: {exc.msg}", location=location) from exc


class _CallSiteFinder(ast.NodeVisitor):
    def __init__(self):
        self.calls: List[ast.Call] = []

    def visit_Call(self, node: ast.Call):
        if is_call_site(node):
            # Arguments of a call site are parsed, not searched.
            self.calls.append(node)
            return
        self.generic_visit(node)


def is_call_site(node: ast.AST) -> bool:
    """True for ``build_wasm(...)`` and ``<anything>.build_wasm(...)``."""
    if not isinstance(node, ast.Call):
        return False
    func = node.func
    if isinstance(func, ast.Name):
        return func.id == ENTRY_POINT
    if isinstance(func, ast.Attribute):
        return func.attr == ENTRY_POINT
    return False


def find_call_sites(tree: ast.AST) -> List[ast.Call]:
    """Outermost call sites in *tree*, in source order."""
    finder = _CallSiteFinder()
    finder.visit(tree)
    return sorted(finder.calls, key=lambda c: (c.lineno, c.col_offset))


def request_from_call(call: ast.Call, origin: Origin) -> BuildRequest:
    """Build a BuildRequest from a parsed ``build_wasm(...)`` call node."""
    location = origin.locate(call)

    for arg in call.args:
        if isinstance(arg, ast.Starred):
            raise _error(origin, arg, "`*` expansion is not supported; write the path as a string")
    for kw in call.keywords:
        if kw.arg is None:
            raise _error(origin, kw, "`**` expansion is not supported; write each field out")

    if call.args:
        if call.keywords:
            raise _error(
                origin,
                call.keywords[0],
                "a positional path cannot be combined with named fields; use `path=`",
            )
        if len(call.args) > 1:
            raise _error(origin, call.args[1], "expected a single path string")
        path = _expect_str(call.args[0], origin)
        return _make_request(origin, call, location, source_path=path)

    values: Dict[str, ast.expr] = {}
    for kw in call.keywords:
        if kw.arg in values:
            raise _error(origin, kw, f"duplicate field `{kw.arg}`")
        if kw.arg not in FIELDS:
            raise _error(
                origin,
                kw,
                f"unknown field `{kw.arg}`; expected one of {', '.join(FIELDS)}",
            )
        values[kw.arg] = kw.value

    if "path" not in values:
        raise _error(origin, call, "missing required field `path`")

    return _make_request(
        origin,
        call,
        location,
        source_path=_expect_str(values["path"], origin),
        proposals=_parse_features(values["features"], origin) if "features" in values else (),
        env_overrides=_parse_env(values["env"], origin) if "env" in values else (),
        release=_expect_bool(values["release"], origin) if "release" in values else False,
    )


def _make_request(origin: Origin, call: ast.Call, location: SourceLocation, **fields) -> BuildRequest:
    try:
        return BuildRequest(location=location, **fields)
    except ValidationError as exc:
        first = exc.errors()[0]
        raise _error(origin, call, f"invalid invocation: {first['msg']}") from exc


# ── Field parsers ────────────────────────────────────────────────────────────

def _expect_str(node: ast.expr, origin: Origin) -> str:
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return node.value
    raise _error(origin, node, "expected a string literal")


def _expect_bool(node: ast.expr, origin: Origin) -> bool:
    if isinstance(node, ast.Constant) and isinstance(node.value, bool):
        return node.value
    raise _error(origin, node, "expected `True` or `False`")


def _parse_features(node: ast.expr, origin: Origin) -> Tuple[Proposal, ...]:
    if not isinstance(node, (ast.List, ast.Set, ast.Tuple)):
        raise _error(origin, node, "expected a list of features, e.g. `[atomics, bulk_memory]`")

    found: List[Proposal] = []
    for elt in node.elts:
        if isinstance(elt, ast.Name):
            name = elt.id
        elif isinstance(elt, ast.Constant) and isinstance(elt.value, str):
            name = elt.value
        else:
            raise _error(origin, elt, "expected a single name giving a feature")

        proposal = _PROPOSALS.get(name.replace("-", "_"))
        if proposal is None:
            raise _error(
                origin,
                elt,
                f"unknown feature `{name}`; expected one of {', '.join(_PROPOSALS)}",
            )
        if proposal in found:
            raise _error(origin, elt, f"duplicate feature `{name}`")
        found.append(proposal)
    return tuple(found)


def _parse_env(node: ast.expr, origin: Origin) -> Tuple[Tuple[str, str], ...]:
    pairs: List[Tuple[str, str, ast.AST]] = []

    if isinstance(node, ast.Dict):
        for key, value in zip(node.keys, node.values):
            if key is None:
                raise _error(origin, value, "`**` expansion is not supported in `env`")
            pairs.append((_expect_str(key, origin), _env_value(value, origin), key))
    elif (
        isinstance(node, ast.Call)
        and isinstance(node.func, ast.Name)
        and node.func.id == ENV_CONSTRUCTOR
    ):
        if node.args:
            raise _error(origin, node.args[0], "expected key value pairs, e.g. `Env(FOO=\"bar\")`")
        for kw in node.keywords:
            if kw.arg is None:
                raise _error(origin, kw, "`**` expansion is not supported in `env`")
            pairs.append((kw.arg, _env_value(kw.value, origin), kw))
    else:
        raise _error(origin, node, "expected key value pairs: a dict literal or `Env(NAME=value, ...)`")

    seen: Dict[str, str] = {}
    result: List[Tuple[str, str]] = []
    for name, value, at in pairs:
        if not name or "=" in name or "\0" in name:
            raise _error(origin, at, f"invalid environment variable name {name!r}")
        if name in seen:
            raise _error(origin, at, f"duplicate environment variable `{name}`")
        seen[name] = value
        result.append((name, value))
    return tuple(result)


def _env_value(node: ast.expr, origin: Origin) -> str:
    """Render a literal env value the way the build tool will see it."""
    negative = False
    inner = node
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.USub):
        negative = True
        inner = node.operand

    if isinstance(inner, ast.Constant):
        value = inner.value
        if isinstance(value, bool) and not negative:
            return "true" if value else "false"
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(-value if negative else value)
        if isinstance(value, str) and not negative:
            return value

    raise _error(
        origin,
        node,
        f"expected a string, int, float or bool, found `{ast.unparse(node)}`",
    )
