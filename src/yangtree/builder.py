"""
Schema Builder (Layer 2: Statement Record → Validated Expression Tree).

Pipeline for every statement:
    1. Tokenize source strings (failures become SchemaSyntaxError)
    2. Reject anything that is not a record
    3. Compute the effective keyword ("prefix:keyword" when prefixed)
    4. Resolve the Extension for the keyword, lexically from the parent
    5. Check the argument against the Extension's ArgumentSpec
    6. Copy the Extension's declared scope
    7. Build all substatements as children
    8. Run the construct hook (failures become ConstructFailed)
    9. Check minimum cardinality

Any error aborts the whole build; nothing is attached to the parent.
"""

import logging
import re
from typing import Any, Callable, Dict, Mapping, Optional

from .config import settings
from .errors import (
    ArgumentNotAllowed,
    ArgumentRequired,
    ConstructFailed,
    InvalidSchema,
    SchemaSyntaxError,
    UnknownExtension,
)
from .expressions import Expression
from .extensions import Extension, registry
from .tokenizer import TokenizeError, tokenize

logger = logging.getLogger(__name__)


def source_context(source: str, offset: int, window: Optional[int] = None) -> str:
    """Return source[offset-window : offset+window] with whitespace runs collapsed."""
    if window is None:
        window = settings.context_window
    start = max(0, offset - window)
    return re.sub(r'\s+', ' ', source[start:offset + window])


def resolve_extension(keyword: str, parent: Optional[Expression]) -> Extension:
    """
    Find the Extension for keyword, starting at the node under construction.

    Raises:
        UnknownExtension: If nothing is found in the tree or the registry
    """
    if parent is not None:
        extension = parent.resolve('extension', keyword)
    else:
        extension = registry.get(keyword)
    if extension is None:
        raise UnknownExtension(keyword)
    return extension


class SchemaBuilder:
    """Builds validated Expression trees from records or source text."""

    def __init__(self, tokenizer: Callable[[str], Dict[str, Any]] = tokenize):
        self.tokenizer = tokenizer

    def tokenize(self, source: str) -> Dict[str, Any]:
        try:
            return self.tokenizer(source)
        except TokenizeError as err:
            context = source_context(source, err.offset)
            raise SchemaSyntaxError(
                "invalid schema syntax", offset=err.offset, context=context
            ) from err

    def build(self, schema: Any, parent: Optional[Expression] = None) -> Optional[Expression]:
        """
        Build one statement (and its substatements).

        Args:
            schema: Source string, record dict, built Expression or None
            parent: Node the result will be attached to (not attached here)

        Returns:
            Validated Expression, or None for empty input
        """
        if schema is None:
            return None
        if isinstance(schema, Expression):
            return schema
        if isinstance(schema, str):
            schema = self.tokenize(schema)
        if not isinstance(schema, Mapping):
            raise InvalidSchema(f"expected a statement record, got {type(schema).__name__}")

        keyword = schema.get('keyword')
        if not isinstance(keyword, str) or not keyword:
            raise InvalidSchema(f"statement record has no keyword: {dict(schema)!r}")
        prefix = schema.get('prefix')
        if prefix:
            keyword = f"{prefix}:{keyword}"

        if parent is not None:
            parent.admit(keyword)

        extension = resolve_extension(keyword, parent)

        argument = schema.get('argument')
        if argument is not None:
            argument = str(argument)
        spec = extension.resolve('argument')
        if argument is not None and spec is None:
            raise ArgumentNotAllowed(keyword, argument)
        if argument is None and spec is not None and not spec.optional:
            raise ArgumentRequired(keyword, spec.kind)

        factory = extension.resolve('factory') or Expression
        node = factory(keyword, argument, parent)
        node.origin = extension
        node.argument_kind = spec.kind if spec is not None else None
        node.scope = dict(extension.resolve('scope') or {})

        node.extends(*(schema.get('substatements') or []))

        construct = extension.resolve('construct')
        if construct is not None:
            try:
                construct(node)
            except Exception as err:
                logger.exception("construct hook failed for '%s %s'", keyword, argument)
                raise ConstructFailed(keyword, argument, str(err)) from err

        node.check_scope()
        logger.debug("built %r", node)
        return node

    def parse(self, source: str) -> Expression:
        if not isinstance(source, str):
            raise InvalidSchema(f"expected schema source text, got {type(source).__name__}")
        return self.build(source)


_default_builder = SchemaBuilder()


def build(schema: Any, parent: Optional[Expression] = None) -> Optional[Expression]:
    """Build schema with the default builder."""
    return _default_builder.build(schema, parent=parent)


def parse(source: str) -> Expression:
    """Parse schema source text into a validated Expression tree."""
    return _default_builder.parse(source)


__all__ = [
    "SchemaBuilder",
    "build",
    "parse",
    "resolve_extension",
    "source_context",
]
