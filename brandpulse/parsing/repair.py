"""Mechanical repairs applied by the cleaning parse stage.

Each repair is a pure text -> text function. They run in order on a slice
that already failed strict parsing.
"""

from __future__ import annotations

import ast
import logging
import operator
import re
from collections.abc import Callable

logger = logging.getLogger(__name__)

_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_SMART_DOUBLE_QUOTES = str.maketrans({"\u201c": '"', "\u201d": '"', "\u201e": '"', "\u2033": '"'})
_SMART_SINGLE_QUOTES = str.maketrans({"\u2018": "'", "\u2019": "'"})
# 'key': or : 'value' in structural positions only, so apostrophes inside
# double-quoted strings are left alone
_SINGLE_QUOTED_RE = re.compile(r"(?<=[{\[,:])(\s*)'([^'\"\\]*)'(?=\s*[:,}\]])")
_UNQUOTED_KEY_RE = re.compile(r"(?<=[{,])(\s*)([A-Za-z_][A-Za-z0-9_\-]*)(\s*):")
_ADJACENT_OBJECTS_RE = re.compile(r"}\s*{")
_ADJACENT_ARRAYS_RE = re.compile(r"]\s*\[")
_OBJECT_THEN_KEY_RE = re.compile(r'}(\s*)"')
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")
_WHITESPACE_RE = re.compile(r"\s+")
_DOUBLED_QUOTES_RE = re.compile(r'"{2,}(?=[^\s:,}\]])')

# A numeric expression in value position: ": 6 / ((1 + 10) / 187),"
_FORMULA_RE = re.compile(r"(:\s*)(-?\(?\s*\d[\d.\s()+\-*/]*[+\-*/][\d.\s()+\-*/]*\d\s*\)?)(\s*[,}\]])")

_BIN_OPS: dict[type, Callable[[float, float], float]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
}


def _eval_arithmetic(node: ast.AST) -> float:
    if isinstance(node, ast.Expression):
        return _eval_arithmetic(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
        return float(node.value)
    if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
        return _BIN_OPS[type(node.op)](_eval_arithmetic(node.left), _eval_arithmetic(node.right))
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.USub):
        return -_eval_arithmetic(node.operand)
    raise ValueError(f"unsupported expression node: {type(node).__name__}")


def evaluate_formulas(text: str) -> str:
    """Replace arithmetic expressions in value positions with their result."""

    def _replace(match: re.Match[str]) -> str:
        expression = match.group(2)
        try:
            value = _eval_arithmetic(ast.parse(expression.strip(), mode="eval"))
        except (SyntaxError, ValueError, ZeroDivisionError) as e:
            logger.debug("Formula %r left as-is: %s", expression, e)
            return match.group(0)
        return f"{match.group(1)}{round(value, 4)}{match.group(3)}"

    return _FORMULA_RE.sub(_replace, text)


def remove_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA_RE.sub(r"\1", text)


def normalize_quotes(text: str) -> str:
    text = text.translate(_SMART_DOUBLE_QUOTES).translate(_SMART_SINGLE_QUOTES)
    return _SINGLE_QUOTED_RE.sub(r'\1"\2"', text)


def quote_unquoted_keys(text: str) -> str:
    return _UNQUOTED_KEY_RE.sub(r'\1"\2"\3:', text)


def insert_missing_commas(text: str) -> str:
    text = _ADJACENT_OBJECTS_RE.sub("},{", text)
    text = _ADJACENT_ARRAYS_RE.sub("],[", text)
    return _OBJECT_THEN_KEY_RE.sub(r'},\1"', text)


def strip_control_characters(text: str) -> str:
    text = _CONTROL_CHARS_RE.sub(" ", text)
    text = _WHITESPACE_RE.sub(" ", text)
    return _DOUBLED_QUOTES_RE.sub('"', text).strip()


REPAIRS: tuple[Callable[[str], str], ...] = (
    strip_control_characters,
    normalize_quotes,
    quote_unquoted_keys,
    insert_missing_commas,
    evaluate_formulas,
    remove_trailing_commas,
)


def clean_json_text(text: str) -> str:
    """Apply every repair in order."""
    for repair in REPAIRS:
        text = repair(text)
    return text
