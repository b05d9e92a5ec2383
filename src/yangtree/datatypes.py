"""
Built-in leaf types.

A "type" statement names either a built-in type or a typedef. Typedef
chains are followed through the resolution protocol, so prefixed names
("ex:percent") and typedefs declared in enclosing scopes both work.
Range, length and enum restrictions apply at every level of the chain.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, List

INTEGER_RANGES = {
    'int8': (-2 ** 7, 2 ** 7 - 1),
    'int16': (-2 ** 15, 2 ** 15 - 1),
    'int32': (-2 ** 31, 2 ** 31 - 1),
    'int64': (-2 ** 63, 2 ** 63 - 1),
    'uint8': (0, 2 ** 8 - 1),
    'uint16': (0, 2 ** 16 - 1),
    'uint32': (0, 2 ** 32 - 1),
    'uint64': (0, 2 ** 64 - 1),
}

BUILTIN_TYPES = frozenset(list(INTEGER_RANGES) + [
    'string',
    'boolean',
    'decimal64',
    'enumeration',
    'empty',
    'binary',
    'bits',
    'union',
    'leafref',
    'identityref',
    'instance-identifier',
])


def is_builtin(name: str) -> bool:
    return name in BUILTIN_TYPES


def resolve_chain(type_expr) -> List[Any]:
    """
    Follow typedefs from a type statement down to a built-in type.

    Returns:
        Type statements, outermost first, built-in last

    Raises:
        ValueError: On unknown type names or typedef cycles
    """
    chain = []
    current = type_expr
    while True:
        if current in chain:
            raise ValueError(f"typedef cycle through '{current.argument}'")
        chain.append(current)
        name = current.argument
        if is_builtin(name):
            return chain
        typedef = current.resolve('typedef', name)
        if typedef is None:
            raise ValueError(f"unknown type '{name}'")
        current = typedef.child('type')


def _bound(text: str) -> Decimal:
    text = text.strip()
    if text == 'min':
        return Decimal('-Infinity')
    if text == 'max':
        return Decimal('Infinity')
    return Decimal(text)


def in_ranges(number: Any, spec: str) -> bool:
    """Check number against a "1..10 | 20 | 30..max" restriction."""
    value = Decimal(str(number))
    for part in spec.split('|'):
        if '..' in part:
            low, high = part.split('..', 1)
            if _bound(low) <= value <= _bound(high):
                return True
        elif value == _bound(part):
            return True
    return False


def coerce(type_expr, value: Any) -> Any:
    """Convert textual values (defaults, YAML input) to the base type."""
    if not isinstance(value, str):
        return value
    base = resolve_chain(type_expr)[-1].argument
    if base in INTEGER_RANGES:
        try:
            return int(value)
        except ValueError:
            return value
    if base == 'boolean' and value in ('true', 'false'):
        return value == 'true'
    if base == 'decimal64':
        try:
            return Decimal(value)
        except InvalidOperation:
            return value
    return value


def check(type_expr, value: Any) -> bool:
    """True when value satisfies the type statement and its restrictions."""
    chain = resolve_chain(type_expr)
    builtin = chain[-1]
    base = builtin.argument

    if base in INTEGER_RANGES:
        if not isinstance(value, int) or isinstance(value, bool):
            return False
        low, high = INTEGER_RANGES[base]
        if not low <= value <= high:
            return False
    elif base == 'boolean':
        if not isinstance(value, bool):
            return False
    elif base == 'string':
        if not isinstance(value, str):
            return False
    elif base == 'decimal64':
        if not isinstance(value, (int, float, Decimal)) or isinstance(value, bool):
            return False
    elif base == 'enumeration':
        if value not in [enum.argument for enum in builtin.children_of('enum')]:
            return False
    elif base == 'empty':
        if value not in (True, None):
            return False

    for statement in chain:
        restriction = statement.child('range')
        if restriction is not None and not in_ranges(value, restriction.argument):
            return False
        restriction = statement.child('length')
        if restriction is not None and not in_ranges(len(value), restriction.argument):
            return False
    return True
