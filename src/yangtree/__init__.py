"""
yangtree: extensible schema expression trees with live projection.

A schema (YANG-like statement text, or an equivalent record dict) is built
into a tree of Expression nodes. Which keywords exist, what arguments they
take and which children they admit is declared by Extensions, which are
themselves Expressions, so schemas can declare new keywords.

A validated tree can be:
    - rendered back to text (to_string)
    - exported as dict/JSON/YAML (serialization)
    - projected onto a Model, whose bindings follow later schema edits

Typical use:

    from yangtree import core, parse

    core.install()
    schema = parse(source)
    model = schema.transform()
"""

__version__ = "0.1.0"

from .builder import SchemaBuilder, build, parse
from .config import Settings, settings
from .elements import Element, Model
from .errors import (
    ArgumentNotAllowed,
    ArgumentRequired,
    ConstraintViolation,
    ConstructFailed,
    DuplicateExtension,
    InvalidSchema,
    InvalidTransformInput,
    ReadOnlyError,
    SchemaError,
    SchemaSyntaxError,
    UnknownExtension,
    ValidationFailed,
)
from .expressions import Cardinality, Expression
from .extensions import ArgumentSpec, ElementHook, Extension, ExtensionRegistry, register, registry, reset
from .serialization import to_string

__all__ = [
    "SchemaBuilder",
    "build",
    "parse",
    "Settings",
    "settings",
    "Element",
    "Model",
    "Cardinality",
    "Expression",
    "ArgumentSpec",
    "ElementHook",
    "Extension",
    "ExtensionRegistry",
    "register",
    "registry",
    "reset",
    "to_string",
    "SchemaError",
    "SchemaSyntaxError",
    "InvalidSchema",
    "UnknownExtension",
    "ArgumentNotAllowed",
    "ArgumentRequired",
    "ConstructFailed",
    "ConstraintViolation",
    "ValidationFailed",
    "InvalidTransformInput",
    "DuplicateExtension",
    "ReadOnlyError",
]
