"""
Expression Tree for yangtree

Every statement of a schema ("module", "container foo", "leaf bar", ...)
becomes one Expression node. A node knows:
    - its keyword and optional argument
    - the Extension it was built from (origin)
    - which child keywords it admits, and how many (scope)
    - its children, grouped by keyword and in insertion order

ARCHITECTURAL RULE:
    Children are only ever added through extend().
    Nothing is removed; re-extension accumulates.
    The parent link is set once and never reassigned.

Parent links and change subscriptions are weak references, so the owning
tree holds the only strong references to its children.
"""

import logging
import weakref
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional

from .errors import ConstraintViolation, InvalidSchema

logger = logging.getLogger(__name__)


class Cardinality(Enum):
    """
    How many children of a keyword a scope admits.

    The values follow the usual "min..max" notation. Names such as
    "optional" or "one-or-many" are accepted as aliases.
    """

    OPTIONAL = "0..1"
    EXACTLY_ONE = "1"
    ZERO_OR_MANY = "0..n"
    ONE_OR_MANY = "1..n"

    @classmethod
    def _missing_(cls, value):
        aliases = {
            "optional": cls.OPTIONAL,
            "?": cls.OPTIONAL,
            "exactly-one": cls.EXACTLY_ONE,
            "1..1": cls.EXACTLY_ONE,
            "zero-or-many": cls.ZERO_OR_MANY,
            "*": cls.ZERO_OR_MANY,
            "0..*": cls.ZERO_OR_MANY,
            "one-or-many": cls.ONE_OR_MANY,
            "+": cls.ONE_OR_MANY,
            "1..*": cls.ONE_OR_MANY,
        }
        if isinstance(value, str):
            return aliases.get(value.strip().lower())
        if value == 1:
            return cls.EXACTLY_ONE
        return None

    @property
    def minimum(self) -> int:
        return 1 if self in (Cardinality.EXACTLY_ONE, Cardinality.ONE_OR_MANY) else 0

    @property
    def maximum(self) -> Optional[int]:
        return 1 if self in (Cardinality.OPTIONAL, Cardinality.EXACTLY_ONE) else None


def normalize_scope(scope: Optional[Mapping[str, Any]]) -> Dict[str, Cardinality]:
    """Turn {keyword: "0..n"} style declarations into Cardinality members."""
    return {
        keyword: value if isinstance(value, Cardinality) else Cardinality(value)
        for keyword, value in (scope or {}).items()
    }


class Expression:
    """
    A single schema statement.

    Properties:
        keyword: Effective keyword, "prefix:keyword" for extension usages
        argument: Statement argument (None when absent)
        argument_kind: Argument name declared by the origin Extension
            ("value" and "text" are quoted when rendered)
        scope: Admitted child keywords and their Cardinality
        origin: Extension this node was built from
    """

    def __init__(self, keyword: str, argument: Optional[str] = None, parent: Optional["Expression"] = None):
        self.keyword = keyword
        self.argument = argument
        self.argument_kind: Optional[str] = None
        self.scope: Dict[str, Cardinality] = {}
        self.origin = None
        self._parent = weakref.ref(parent) if parent is not None else None
        self._children: Dict[str, List["Expression"]] = {}
        self._expressions: List["Expression"] = []
        self._namespaces: Dict[str, "weakref.ref[Expression]"] = {}
        self._subscribers: List[weakref.ref] = []

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    @property
    def parent(self) -> Optional["Expression"]:
        return self._parent() if self._parent is not None else None

    @property
    def prefix(self) -> Optional[str]:
        if ':' in self.keyword:
            return self.keyword.split(':', 1)[0]
        return None

    @property
    def key(self) -> str:
        """Binding key used when this node is projected onto a host."""
        if self.argument is None or self.argument_kind in ('value', 'text'):
            return self.keyword
        return self.argument

    def child(self, keyword: str) -> Optional["Expression"]:
        """First child with the given keyword, or None."""
        group = self._children.get(keyword)
        return group[0] if group else None

    def children_of(self, keyword: str) -> List["Expression"]:
        return list(self._children.get(keyword, []))

    def expressions(self) -> List["Expression"]:
        """All children in insertion order."""
        return list(self._expressions)

    def __iter__(self) -> Iterator["Expression"]:
        return iter(self.expressions())

    def __len__(self) -> int:
        return len(self._expressions)

    def __repr__(self) -> str:
        if self.argument is None:
            return f"<{type(self).__name__} {self.keyword}>"
        return f"<{type(self).__name__} {self.keyword} {self.argument!r}>"

    def __str__(self) -> str:
        return self.to_string()

    # ------------------------------------------------------------------
    # Scope
    # ------------------------------------------------------------------

    def admit(self, keyword: str) -> None:
        """
        Check that one more child with this keyword fits the scope.

        Prefixed keywords (extension usages) are admitted anywhere.
        Minimum counts are not checked here; see check_scope().

        Raises:
            ConstraintViolation: If the keyword is not in scope or is full
        """
        cardinality = self.scope.get(keyword)
        if cardinality is None:
            if ':' in keyword:
                return
            raise ConstraintViolation(
                f"'{keyword}' is not allowed in '{self.keyword}'", keyword
            )
        count = len(self._children.get(keyword, []))
        if cardinality.maximum is not None and count >= cardinality.maximum:
            raise ConstraintViolation(
                f"'{self.keyword}' allows '{keyword}' at most {cardinality.maximum} time(s) "
                f"(cardinality {cardinality.value})",
                keyword,
                cardinality.value,
            )

    def check_scope(self) -> None:
        """
        Verify every required child keyword is present.

        Raises:
            ConstraintViolation: Naming the missing keyword and its cardinality
        """
        for keyword, cardinality in self.scope.items():
            if cardinality.minimum and not self._children.get(keyword):
                raise ConstraintViolation(
                    f"'{self.keyword}' requires '{keyword}' (cardinality {cardinality.value})",
                    keyword,
                    cardinality.value,
                )

    # ------------------------------------------------------------------
    # Extension
    # ------------------------------------------------------------------

    def extend(self, child: Any) -> "Expression":
        """
        Add a child statement and notify subscribers.

        Args:
            child: A raw record, schema source string or built Expression

        Returns:
            The attached child Expression
        """
        if child is None:
            raise InvalidSchema(f"cannot extend '{self.keyword}' with nothing")

        if isinstance(child, Expression):
            current = child.parent
            if current is not None and current is not self:
                raise InvalidSchema(
                    f"'{child.keyword}' already belongs to '{current.keyword}'"
                )
            self.admit(child.keyword)
            if current is None:
                child._parent = weakref.ref(self)
        else:
            from .builder import build
            child = build(child, parent=self)

        self._children.setdefault(child.keyword, []).append(child)
        self._expressions.append(child)
        self.notify(child)
        return child

    def extends(self, *children: Any) -> "Expression":
        """Extend with each non-empty entry, in order."""
        for child in children:
            if child is None or (isinstance(child, (dict, str)) and not child):
                continue
            self.extend(child)
        return self

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def bind_namespace(self, prefix: str, node: "Expression") -> None:
        """Make "prefix:name" arguments resolve against node."""
        self._namespaces[prefix] = weakref.ref(node)

    def _namespace_targets(self, prefix: str) -> List["Expression"]:
        targets = list(self._children.get(prefix, []))
        ref = self._namespaces.get(prefix)
        node = ref() if ref is not None else None
        if node is not None and node not in targets:
            targets.append(node)
        return targets

    def resolve(self, kw: str, arg: Optional[str] = None) -> Any:
        """
        Lexically scoped lookup.

        Without arg, returns the origin Extension's declared metadata named kw.
        With arg, finds the nearest node with keyword kw and argument arg,
        searching this node, then its ancestors. A "p:name" arg is first
        looked up inside the child group or namespace named p. At the root,
        "extension" lookups fall back to the Extension Registry.

        Returns:
            The match, or None
        """
        if arg is None:
            return self.origin.resolve(kw) if self.origin is not None else None

        if ':' in arg:
            prefix, rest = arg.split(':', 1)
            for target in self._namespace_targets(prefix):
                match = target.resolve(kw, rest)
                if match is not None:
                    return match
        else:
            for child in self._children.get(kw, []):
                if child.argument == arg:
                    return child

        parent = self.parent
        if parent is not None:
            return parent.resolve(kw, arg)
        if kw == 'extension':
            from .extensions import registry
            return registry.get(arg)
        return None

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def subscribe(self, listener: Any) -> None:
        """Register listener.changed(owner, child); held weakly, once."""
        for ref in self._subscribers:
            if ref() is listener:
                return
        self._subscribers.append(weakref.ref(listener))

    def unsubscribe(self, listener: Any) -> None:
        self._subscribers = [
            ref for ref in self._subscribers if ref() is not None and ref() is not listener
        ]

    def subscribers(self) -> List[Any]:
        return [listener for listener in (ref() for ref in self._subscribers) if listener is not None]

    def notify(self, child: "Expression") -> None:
        """Dispatch changed(self, child) synchronously in registration order."""
        for listener in self.subscribers():
            listener.changed(self, child)
        self._subscribers = [ref for ref in self._subscribers if ref() is not None]

    # ------------------------------------------------------------------
    # Rendering and projection
    # ------------------------------------------------------------------

    def to_string(self, space: Optional[int] = None) -> str:
        from .serialization import to_string
        return to_string(self, space=space)

    def transform(self, host: Any = None) -> Any:
        """Project this node onto host (a Model); returns the host."""
        from .elements import transform
        return transform(self, host)

    def validate(self, obj: Any) -> Any:
        """Validate obj against this node's element hook; returns the Element."""
        from .elements import validate
        return validate(self, obj)
