"""String helpers shared by the model loader and the enforcer.

The matcher language uses dotted names (``r.sub``, ``p.obj``) that the
expression evaluator cannot bind directly, so assertions are escaped into
flat variable names (``r_sub``) before they are stored on the model.
Attribute access on request values (``r.obj.Owner``) becomes a subscript on
the flattened variable (``r_obj['Owner']``).
"""
from __future__ import annotations

import re

EVAL_REG = re.compile(r"\beval\(([^),]*)\)")

# ``r.obj.Owner`` but not ``r.obj.keyMatch(...)``, which is a postfix call.
_ATTRIBUTE_REG = re.compile(r"\b([rp]\d*)\.(\w+)\.([A-Za-z_]\w*)\b(?!\s*\()")
_PREFIX_REG = re.compile(r"\b([rp]\d*)\.")
_COMMENT_OR_STRING_REG = re.compile(r"'(?:[^'\\]|\\.)*'|\"(?:[^\"\\]|\\.)*\"|#")


def remove_comments(text: str) -> str:
    """Strip a trailing ``#`` comment and surrounding whitespace.

    A ``#`` inside a quoted string literal does not start a comment.
    """
    for match in _COMMENT_OR_STRING_REG.finditer(text):
        if match.group(0) == "#":
            return text[: match.start()].strip()
    return text.strip()


def escape_assertion(text: str) -> str:
    """Rewrite dotted request/policy names into evaluator-friendly names.

    >>> escape_assertion("r.sub == p.sub && r.obj.Owner == r.sub")
    "r_sub == p_sub && r_obj['Owner'] == r_sub"
    """
    text = _ATTRIBUTE_REG.sub(r"\1_\2['\3']", text)
    return _PREFIX_REG.sub(r"\1_", text)


def has_eval(text: str) -> bool:
    """Return True when the matcher contains an ``eval(name)`` meta-call."""
    return EVAL_REG.search(text) is not None


def get_eval_value(text: str) -> list[str]:
    """Return the argument names of every ``eval(...)`` call, in order."""
    return [name.strip() for name in EVAL_REG.findall(text)]


def replace_eval(text: str, rules: list[str]) -> str:
    """Replace each ``eval(...)`` call with the matching parenthesised rule."""
    replacements = iter(rules)

    def _substitute(_: re.Match[str]) -> str:
        return f"({next(replacements)})"

    return EVAL_REG.sub(_substitute, text)


def array_to_string(values: list[object]) -> str:
    """Join values for log output."""
    return ", ".join(str(v) for v in values)


def params_to_string(*params: object) -> str:
    return ", ".join(str(p) for p in params)
