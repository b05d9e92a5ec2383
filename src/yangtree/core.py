"""
Core vocabulary: a YANG subset declared as Extensions.

Host applications call install() once at startup (tests call it per case
after resetting the registry). Each keyword is declared as data:

    - argument kind, following the YANG argument names
    - child scope with cardinality
    - hooks from the table below

Hooks:
    extension        construct: read the "argument" child into an ArgumentSpec
    prefix           construct: bind the prefix to the declaring node
    uses             construct: the grouping must resolve
                     transform: contribute the grouping's data nodes and
                                keep the projecting Element following the grouping
    leaf, typedef    construct: a default must satisfy the type
    type             construct: the type must be built-in or a typedef
    module, container,
    list entries,
    input, output    element: nested fields from data children
    leaf, leaf-list  element: typed values, validated against "type"
    list             element: list of entry Models, checked for keys
    rpc              element: invocable; the stored value is the handler
"""

import logging
from typing import Any, List, Optional

from . import datatypes
from .elements import Element, Model
from .expressions import Expression
from .extensions import ArgumentSpec, ElementHook, Extension, ExtensionRegistry, registry

logger = logging.getLogger(__name__)

COMMON_SCOPE = {
    'description': '0..1',
    'reference': '0..1',
    'status': '0..1',
}

DATA_SCOPE = {
    'container': '0..n',
    'leaf': '0..n',
    'leaf-list': '0..n',
    'list': '0..n',
    'uses': '0..n',
    'grouping': '0..n',
    'typedef': '0..n',
}


# =========================================================================
# Transform hooks
# =========================================================================

def _host(target: Any) -> Model:
    return target.fields if isinstance(target, Element) else target


def project_children(expr: Expression, target: Any) -> None:
    """Project every child of expr onto target."""
    host = _host(target)
    for child in expr.expressions():
        child.transform(host)


def project_metadata(expr: Expression, target: Any) -> None:
    """Project only children that are not data nodes (config, default, ...)."""
    host = _host(target)
    for child in expr.expressions():
        if child.resolve('element') is None and child.resolve('transform') is None:
            child.transform(host)


def expand_grouping(expr: Expression, target: Any) -> None:
    """Contribute the data nodes of the referenced grouping."""
    grouping = expr.resolve('grouping', expr.argument)
    host = _host(target)
    owner = target if isinstance(target, Element) else host.owner
    if owner is not None:
        owner.follow(grouping)
    for child in grouping.expressions():
        if child.resolve('element') is not None or child.resolve('transform') is not None:
            child.transform(host)


# =========================================================================
# Construct hooks
# =========================================================================

def _build_extension(keyword: str, argument: Optional[str], parent: Optional[Expression]) -> Extension:
    return Extension(argument, parent=parent)


def construct_extension(node: Extension) -> None:
    argument = node.child('argument')
    node.argument_spec = ArgumentSpec(argument.argument) if argument is not None else None


def construct_prefix(node: Expression) -> None:
    parent = node.parent
    if parent is not None:
        parent.bind_namespace(node.argument, parent)


def construct_uses(node: Expression) -> None:
    if node.resolve('grouping', node.argument) is None:
        raise ValueError(f"grouping '{node.argument}' not found")


def construct_default(node: Expression) -> None:
    """A default must satisfy the type declared beside it."""
    default = node.child('default')
    type_expr = node.child('type')
    if default is None or type_expr is None:
        return
    if not datatypes.check(type_expr, datatypes.coerce(type_expr, default.argument)):
        raise ValueError(f"default '{default.argument}' is not a valid '{type_expr.argument}'")


def construct_type(node: Expression) -> None:
    chain = datatypes.resolve_chain(node)
    if node.argument == 'enumeration' and not node.children_of('enum'):
        raise ValueError("enumeration requires at least one enum")
    logger.debug("type '%s' resolves to '%s'", node.argument, chain[-1].argument)


# =========================================================================
# Element hooks
# =========================================================================

def _leaf_set(element: Element, value: Any) -> Any:
    type_expr = element.expr.child('type')
    if type_expr is None:
        return value
    return datatypes.coerce(type_expr, value)


def _leaf_validate(element: Element, value: Any) -> Optional[bool]:
    type_expr = element.expr.child('type')
    if type_expr is None or value is None:
        return None
    return datatypes.check(type_expr, value)


def _leaf_list_set(element: Element, value: Any) -> Any:
    if isinstance(value, (str, bytes)) or not hasattr(value, '__iter__'):
        value = [value]
    return [_leaf_set(element, item) for item in value]


def _leaf_list_validate(element: Element, value: Any) -> Optional[bool]:
    if value is None:
        return None
    return all(_leaf_validate(element, item) is not False for item in value)


def _list_entries(element: Element, value: Any) -> List[Model]:
    """Build one entry Model per item, projected from the list's data nodes."""
    if isinstance(value, Model) or not hasattr(value, '__iter__') or isinstance(value, (str, bytes)):
        value = [value]
    entries = []
    for item in value:
        entry = Model()
        for child in element.expr.expressions():
            if child.resolve('element') is not None or child.resolve('transform') is not None:
                child.transform(entry)
        entry.update(item)
        entries.append(entry)
    return entries


def _list_validate(element: Element, value: Any) -> Optional[bool]:
    key = element.expr.child('key')
    if key is None or value is None:
        return None
    names = key.argument.split()
    seen = set()
    for entry in value:
        if any(entry.get(name) is None for name in names):
            return False
        identity = tuple(entry[name] for name in names)
        if identity in seen:
            return False
        seen.add(identity)
    return True


def _rpc_validate(element: Element, value: Any) -> Optional[bool]:
    if value is None:
        return None
    return callable(value)


NESTED = ElementHook()
LEAF = ElementHook(set=_leaf_set, validate=_leaf_validate)
LEAF_LIST = ElementHook(set=_leaf_list_set, validate=_leaf_list_validate)
LIST = ElementHook(set=_list_entries, validate=_list_validate)
RPC = ElementHook(validate=_rpc_validate, invocable=True)


# =========================================================================
# Vocabulary
# =========================================================================

def core_extensions() -> List[Extension]:
    """Fresh Extension instances for the core vocabulary."""
    return [
        Extension('extension', argument='name',
                  scope={'argument': '0..1', **COMMON_SCOPE},
                  construct=construct_extension, factory=_build_extension),
        Extension('argument', argument='name', scope={'yin-element': '0..1'}),
        Extension('yin-element', argument='value'),
        Extension('module', argument='name',
                  scope={'namespace': '1', 'prefix': '1', 'organization': '0..1', 'contact': '0..1',
                         'revision': '0..n', 'extension': '0..n', 'rpc': '0..n',
                         **COMMON_SCOPE, **DATA_SCOPE},
                  transform=project_children, element=NESTED),
        Extension('namespace', argument='uri'),
        Extension('prefix', argument='value', construct=construct_prefix),
        Extension('organization', argument='text'),
        Extension('contact', argument='text'),
        Extension('description', argument='text'),
        Extension('reference', argument='text'),
        Extension('status', argument='value'),
        Extension('revision', argument='date', scope={'description': '0..1', 'reference': '0..1'}),
        Extension('container', argument='name',
                  scope={'config': '0..1', **COMMON_SCOPE, **DATA_SCOPE},
                  transform=project_children, element=NESTED),
        Extension('leaf', argument='name',
                  scope={'type': '1', 'default': '0..1', 'config': '0..1', 'mandatory': '0..1',
                         'units': '0..1', **COMMON_SCOPE},
                  construct=construct_default, transform=project_metadata, element=LEAF),
        Extension('leaf-list', argument='name',
                  scope={'type': '1', 'config': '0..1', 'units': '0..1', **COMMON_SCOPE},
                  transform=project_metadata, element=LEAF_LIST),
        Extension('list', argument='name',
                  scope={'key': '0..1', 'config': '0..1', **COMMON_SCOPE, **DATA_SCOPE},
                  transform=project_metadata, element=LIST),
        Extension('key', argument='value'),
        Extension('type', argument='name',
                  scope={'enum': '0..n', 'range': '0..1', 'length': '0..1'},
                  construct=construct_type),
        Extension('enum', argument='name', scope={'description': '0..1', 'reference': '0..1'}),
        Extension('range', argument='value'),
        Extension('length', argument='value'),
        Extension('typedef', argument='name',
                  scope={'type': '1', 'default': '0..1', 'units': '0..1', **COMMON_SCOPE},
                  construct=construct_default),
        Extension('grouping', argument='name', scope={**COMMON_SCOPE, **DATA_SCOPE}),
        Extension('uses', argument='grouping', scope=COMMON_SCOPE,
                  construct=construct_uses, transform=expand_grouping),
        Extension('default', argument='value'),
        Extension('config', argument='value'),
        Extension('mandatory', argument='value'),
        Extension('units', argument='name'),
        Extension('rpc', argument='name',
                  scope={'input': '0..1', 'output': '0..1', 'typedef': '0..n', 'grouping': '0..n',
                         **COMMON_SCOPE},
                  element=RPC),
        Extension('input', scope=DATA_SCOPE, transform=project_children, element=NESTED),
        Extension('output', scope=DATA_SCOPE, transform=project_children, element=NESTED),
    ]


def install(target: Optional[ExtensionRegistry] = None, override: bool = False) -> ExtensionRegistry:
    """Register the core vocabulary; returns the registry used."""
    target = target if target is not None else registry
    for extension in core_extensions():
        target.register(extension, override=override)
    logger.debug("installed %d core extensions", len(target))
    return target


__all__: List[str] = [
    "core_extensions",
    "install",
    "project_children",
    "project_metadata",
    "expand_grouping",
]

