"""
Arithmetic formula language for auto columns.

Formulas are parsed into a small AST and interpreted directly; nothing is
compiled to Python code. Supported syntax:
- numbers, variables (`x1`, `x12`, ...), parentheses
- unary `+` / `-`, binary `+ - * /` (`×` is read as `*`)
- calls `name(arg, ...)` to caller-supplied functions (`f1`, `f2`, ...) or
  to the built-in math helpers listed in MATH_KEYWORDS
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Callable, Final, Union

logger = logging.getLogger(__name__)


class FormulaError(ValueError):
    pass


MATH_KEYWORDS: Final[frozenset[str]] = frozenset(
    {"min", "max", "floor", "ceil", "round", "abs", "sin", "cos", "tan", "log", "sqrt", "pow", "pi", "e"}
)

_IDENT_RE = re.compile(r"[a-zA-Z][a-zA-Z0-9]*")
_FUNC_NAME_RE = re.compile(r"^f\d+$", re.IGNORECASE)
_TOKEN_RE = re.compile(
    r"\s*(?:(?P<num>\d+\.?\d*|\.\d+)|(?P<ident>[a-zA-Z_][a-zA-Z0-9_]*)|(?P<op>[-+*/(),]))"
)

# Parentheses, calls and unary signs may nest this deep.
MAX_NESTING: Final = 200


# --- AST -------------------------------------------------------------------


@dataclass(frozen=True)
class Num:
    value: float


@dataclass(frozen=True)
class Var:
    name: str


@dataclass(frozen=True)
class Unary:
    op: str
    operand: Node


@dataclass(frozen=True)
class Binary:
    op: str
    left: Node
    right: Node


@dataclass(frozen=True)
class Call:
    name: str
    args: tuple[Node, ...]


Node = Union[Num, Var, Unary, Binary, Call]


# --- Tokenizer / parser ----------------------------------------------------


def _tokenize(text: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    pos = 0
    end = len(text.rstrip())
    while pos < end:
        m = _TOKEN_RE.match(text, pos)
        if m is None or m.end() == pos:
            raise FormulaError(f"Unexpected character {text[pos:].strip()[:1]!r} at {pos}")
        kind = m.lastgroup
        assert kind is not None
        tokens.append((kind, m.group(kind)))
        pos = m.end()
    return tokens


class _Parser:
    def __init__(self, tokens: list[tuple[str, str]]) -> None:
        self._tokens = tokens
        self._i = 0
        self._depth = 0

    def _enter(self) -> None:
        self._depth += 1
        if self._depth > MAX_NESTING:
            raise FormulaError(f"Formula nested deeper than {MAX_NESTING} levels")

    def _peek(self) -> tuple[str, str] | None:
        return self._tokens[self._i] if self._i < len(self._tokens) else None

    def _take(self) -> tuple[str, str]:
        tok = self._peek()
        if tok is None:
            raise FormulaError("Unexpected end of formula")
        self._i += 1
        return tok

    def _expect_op(self, op: str) -> None:
        kind, text = self._take()
        if kind != "op" or text != op:
            raise FormulaError(f"Expected {op!r}, got {text!r}")

    def _at_op(self, *ops: str) -> bool:
        tok = self._peek()
        return tok is not None and tok[0] == "op" and tok[1] in ops

    def parse(self) -> Node:
        node = self._expr()
        if self._peek() is not None:
            raise FormulaError(f"Unexpected token {self._peek()[1]!r}")  # type: ignore[index]
        return node

    def _expr(self) -> Node:
        node = self._term()
        while self._at_op("+", "-"):
            op = self._take()[1]
            node = Binary(op, node, self._term())
        return node

    def _term(self) -> Node:
        node = self._unary()
        while self._at_op("*", "/"):
            op = self._take()[1]
            node = Binary(op, node, self._unary())
        return node

    def _unary(self) -> Node:
        if self._at_op("+", "-"):
            op = self._take()[1]
            self._enter()
            node = Unary(op, self._unary())
            self._depth -= 1
            return node
        return self._primary()

    def _primary(self) -> Node:
        kind, text = self._take()
        if kind == "num":
            return Num(float(text))
        if kind == "ident":
            if self._at_op("("):
                self._take()
                self._enter()
                args: list[Node] = []
                if not self._at_op(")"):
                    args.append(self._expr())
                    while self._at_op(","):
                        self._take()
                        args.append(self._expr())
                self._expect_op(")")
                self._depth -= 1
                return Call(text, tuple(args))
            return Var(text)
        if text == "(":
            self._enter()
            node = self._expr()
            self._expect_op(")")
            self._depth -= 1
            return node
        raise FormulaError(f"Unexpected token {text!r}")


def _normalize(formula: str) -> str:
    return formula.replace("×", "*")


def parse_formula(formula: str) -> Node:
    """Parse a formula into an AST. Raises FormulaError on invalid syntax."""
    text = _normalize(formula or "")
    if not text.strip():
        raise FormulaError("Empty formula")
    return _Parser(_tokenize(text)).parse()


# --- Interpreter -----------------------------------------------------------


def _divide(a: float, b: float) -> float:
    # IEEE 754 division, as displayed by the scoreboard ("ERR" for non-finite).
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _js_round(x: float) -> float:
    if not math.isfinite(x):
        return x
    return math.floor(x + 0.5)


def _safe_unary(fn: Callable[[float], float]) -> Callable[[float], float]:
    def wrapped(x: float) -> float:
        try:
            return fn(x)
        except ValueError:
            return math.nan
        except OverflowError:
            return math.inf
    return wrapped


def _js_log(x: float) -> float:
    if x == 0:
        return -math.inf
    if x < 0 or math.isnan(x):
        return math.nan
    return math.log(x)


def _js_pow(a: float, b: float) -> float:
    try:
        return math.pow(a, b)
    except ValueError:
        return math.nan
    except OverflowError:
        return math.inf


def _js_floor(x: float) -> float:
    return math.floor(x) if math.isfinite(x) else x


def _js_ceil(x: float) -> float:
    return math.ceil(x) if math.isfinite(x) else x


_BUILTIN_FUNCTIONS: Final[dict[str, Callable[..., float]]] = {
    "min": lambda *a: min(a) if a else math.inf,
    "max": lambda *a: max(a) if a else -math.inf,
    "floor": _js_floor,
    "ceil": _js_ceil,
    "round": _js_round,
    "abs": abs,
    "sqrt": _safe_unary(math.sqrt),
    "pow": _js_pow,
    "sin": _safe_unary(math.sin),
    "cos": _safe_unary(math.cos),
    "tan": _safe_unary(math.tan),
    "log": _js_log,
}

_BUILTIN_CONSTANTS: Final[dict[str, float]] = {"pi": math.pi, "e": math.e}


def _as_number(value: Any, name: str) -> float:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    raise FormulaError(f"Value of {name!r} is not a number: {value!r}")


def _eval(node: Node, variables: dict[str, Any], functions: dict[str, Callable[..., Any]]) -> float:
    if isinstance(node, Num):
        return node.value

    if isinstance(node, Var):
        if node.name in variables:
            return _as_number(variables[node.name], node.name)
        if node.name in _BUILTIN_CONSTANTS:
            return _BUILTIN_CONSTANTS[node.name]
        raise FormulaError(f"Unknown variable: {node.name!r}")

    if isinstance(node, Unary):
        val = _eval(node.operand, variables, functions)
        return -val if node.op == "-" else val

    if isinstance(node, Binary):
        left = _eval(node.left, variables, functions)
        right = _eval(node.right, variables, functions)
        if node.op == "+":
            return left + right
        if node.op == "-":
            return left - right
        if node.op == "*":
            return left * right
        return _divide(left, right)

    if isinstance(node, Call):
        fn = functions.get(node.name) or _BUILTIN_FUNCTIONS.get(node.name)
        if fn is None:
            raise FormulaError(f"Unknown function: {node.name!r}")
        args = [_eval(a, variables, functions) for a in node.args]
        try:
            return _as_number(fn(*args), node.name)
        except TypeError as e:
            raise FormulaError(f"Bad call to {node.name!r}: {e}") from e

    raise FormulaError(f"Unsupported node: {node!r}")


def evaluate_strict(
    formula: str,
    variables: dict[str, Any],
    functions: dict[str, Callable[..., Any]] | None = None,
) -> float:
    """Evaluate a formula, raising FormulaError for anything it cannot compute."""
    try:
        return _eval(parse_formula(formula), variables, functions or {})
    except (OverflowError, RecursionError) as e:
        # Integer inputs too large for a float, or a very long operator chain.
        raise FormulaError(f"Cannot evaluate: {e}") from e


def evaluate_formula(
    formula: str,
    variables: dict[str, Any],
    functions: dict[str, Callable[..., Any]] | None = None,
) -> float:
    """
    Evaluate a formula for display. Never raises: an empty formula is 0, and a
    formula referencing unknown names or failing to parse is refused with 0.
    Non-finite results (division by zero) are returned as-is.
    """
    if not formula or not formula.strip():
        return 0
    try:
        return evaluate_strict(formula, variables, functions)
    except FormulaError as e:
        logger.warning("Formula refused (%s): %r", e, formula)
        return 0


def extract_identifiers(formula: str) -> dict[str, list[str]]:
    """Split the identifiers of a formula into variables and `f<n>` function names."""
    vars_: list[str] = []
    funcs: list[str] = []
    for token in _IDENT_RE.findall(formula or ""):
        if token.lower() in MATH_KEYWORDS:
            continue
        bucket = funcs if _FUNC_NAME_RE.match(token) else vars_
        if token not in bucket:
            bucket.append(token)
    return {"vars": vars_, "funcs": funcs}
