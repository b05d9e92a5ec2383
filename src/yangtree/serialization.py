"""
Serialization helpers for Expression trees.

Two forms are supported:
    - schema text, re-rendered deterministically (to_string)
    - an intermediate dict, with JSON/YAML round-trip on top of it

Rendering rules by argument kind:
    value → quoted on the same line        leaf 'name';
    text  → quoted on its own, deeper line  description
                                              'Some text';
    other → bare token                      container top { ... }

Rendered output re-tokenizes to an equivalent tree, so serialization is a
fixed point after one round trip.
"""
from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional

import yaml

from .builder import build
from .config import settings
from .expressions import Expression

_NEEDS_QUOTES = re.compile(r'[\s;{}"\']|//|/\*')


def quote(text: str) -> str:
    if "'" not in text:
        return f"'{text}'"
    escaped = text.replace('\\', '\\\\').replace('"', '\\"')
    return f'"{escaped}"'


def bare(text: str) -> str:
    if not text or _NEEDS_QUOTES.search(text):
        return quote(text)
    return text


def _render(expr: Expression, unit: str, depth: int) -> str:
    indent = unit * depth
    head = indent + expr.keyword
    if expr.argument is not None:
        if expr.argument_kind == 'value':
            head += ' ' + quote(expr.argument)
        elif expr.argument_kind == 'text':
            head += '\n' + unit * (depth + 1) + quote(expr.argument)
        else:
            head += ' ' + bare(expr.argument)

    children = expr.expressions()
    if not children:
        return head + ';'
    body = '\n'.join(_render(child, unit, depth + 1) for child in children)
    return f"{head} {{\n{body}\n{indent}}}"


def to_string(expr: Expression, space: Optional[int] = None) -> str:
    """
    Render an Expression tree as schema text.

    Args:
        expr: Root of the tree to render
        space: Indentation width (defaults to settings.indent)
    """
    if space is None:
        space = settings.indent
    if space < 0:
        raise ValueError(f"space must be >= 0, got {space}")
    return _render(expr, ' ' * space, 0)


def expression_to_dict(expr: Expression) -> Dict[str, Any]:
    d: Dict[str, Any] = {}
    if expr.prefix is not None:
        d["prefix"], d["keyword"] = expr.keyword.split(':', 1)
    else:
        d["keyword"] = expr.keyword
    if expr.argument is not None:
        d["argument"] = expr.argument
    d["substatements"] = [expression_to_dict(child) for child in expr.expressions()]
    return d


def expression_from_dict(d: Dict[str, Any]) -> Expression:
    return build(d)


def schema_to_json(expr: Expression) -> str:
    return json.dumps(expression_to_dict(expr), sort_keys=True)


def schema_from_json(s: str) -> Expression:
    d = json.loads(s)
    return expression_from_dict(d)


def schema_to_yaml(expr: Expression) -> str:
    return yaml.safe_dump(expression_to_dict(expr))


def schema_from_yaml(s: str) -> Expression:
    d = yaml.safe_load(s)
    return expression_from_dict(d)
