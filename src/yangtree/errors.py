"""
Exception taxonomy for yangtree.

Every failure raised by the builder, the resolution protocol or the
projection engine derives from SchemaError, so callers can catch one type,
correct the offending input and retry.

ARCHITECTURAL RULE:
    An error always aborts the whole operation.
    No partially built Expression, Element or host binding survives it.
"""

from typing import Optional


class SchemaError(Exception):
    """Base class for all yangtree errors."""
    pass


class SchemaSyntaxError(SchemaError):
    """
    Raised when schema source cannot be tokenized.

    Properties:
        offset: Character offset of the failure in the source
        context: Source window around the offset, whitespace collapsed
    """

    def __init__(self, message: str, offset: int = 0, context: str = ""):
        super().__init__(f"{message} near '{context}'" if context else message)
        self.offset = offset
        self.context = context


class InvalidSchema(SchemaError):
    """Raised when the input is not a statement record."""
    pass


class UnknownExtension(SchemaError):
    """Raised when no extension can be resolved for a keyword."""

    def __init__(self, keyword: str):
        super().__init__(f"unrecognized keyword '{keyword}'")
        self.keyword = keyword


class ArgumentNotAllowed(SchemaError):
    """Raised when an argument is given to a keyword that declares none."""

    def __init__(self, keyword: str, argument: str):
        super().__init__(f"'{keyword}' does not take an argument (got '{argument}')")
        self.keyword = keyword
        self.argument = argument


class ArgumentRequired(SchemaError):
    """Raised when a keyword declares a mandatory argument and none is given."""

    def __init__(self, keyword: str, kind: str):
        super().__init__(f"'{keyword}' requires a '{kind}' argument")
        self.keyword = keyword
        self.kind = kind


class ConstructFailed(SchemaError):
    """Raised when an extension construct hook fails. The cause is chained."""

    def __init__(self, keyword: str, argument: Optional[str], reason: str = ""):
        label = f"{keyword} {argument}" if argument is not None else keyword
        message = f"unable to construct '{label}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.keyword = keyword
        self.argument = argument


class ConstraintViolation(SchemaError):
    """
    Raised when a child keyword breaks the declared scope.

    Properties:
        keyword: Offending or missing child keyword
        cardinality: Declared cardinality string, None when not in scope
    """

    def __init__(self, message: str, keyword: str, cardinality: Optional[str] = None):
        super().__init__(message)
        self.keyword = keyword
        self.cardinality = cardinality


class ValidationFailed(SchemaError):
    """Raised when an element validate hook rejects a value."""
    pass


class InvalidTransformInput(SchemaError):
    """Raised when transform() is given a target that is not a Model."""
    pass


class DuplicateExtension(SchemaError):
    """Raised when a keyword is registered twice without override."""

    def __init__(self, keyword: str):
        super().__init__(f"extension '{keyword}' is already registered")
        self.keyword = keyword


class ReadOnlyError(SchemaError):
    """Raised when assigning to an element that is not configurable."""
    pass
