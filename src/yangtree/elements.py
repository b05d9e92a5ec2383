"""
Projection Engine: Model hosts and live Element bindings.

Projecting (transforming) a schema node onto a Model binds a key to an
Element built from that node. The Element stays subscribed to the node, so
later extend() calls on the schema are reflected without transforming again.

    model = schema.transform()          # Model with one binding per key
    model["example"]["counter"] = 3     # goes through the element hook
    schema.child("container").extend("leaf limit { type uint8; }")
    model["example"]["limit"]           # new field appears

ARCHITECTURAL RULE:
    Nodes whose Extension declares an element hook become Elements.
    All other nodes only record their argument in the host's meta dict.
"""

import inspect
import logging
import weakref
from collections.abc import Mapping, MutableMapping
from typing import Any, Dict, Iterator, List, Optional

from .errors import InvalidTransformInput, ReadOnlyError, SchemaError, ValidationFailed

logger = logging.getLogger(__name__)

_FALSE_VALUES = (False, 'false', 'False', '0')


class Model(MutableMapping):
    """
    Host object for projected bindings.

    Keys map either to Elements (live bindings) or to plain values.
    Reading a bound key returns Element.get(), assigning calls Element.set().
    The meta dict holds bookkeeping for non-element statements and is not
    part of iteration.
    """

    def __init__(self, values: Optional[Mapping] = None):
        self._bindings: Dict[str, Any] = {}
        self.meta: Dict[str, Any] = {}
        self._owner = None
        if values:
            self.update(values)

    @property
    def owner(self) -> Optional["Element"]:
        """Element whose fields this Model holds, if any."""
        return self._owner() if self._owner is not None else None

    def binding(self, key: str) -> Optional["Element"]:
        value = self._bindings.get(key)
        return value if isinstance(value, Element) else None

    def bind(self, key: str, element: "Element") -> None:
        prior = self._bindings.get(key)
        if isinstance(prior, Element) and prior is not element:
            prior.discard()
        self._bindings[key] = element

    def raw(self, key: str) -> Any:
        """The stored binding (Element or plain value) without reading it."""
        return self._bindings.get(key)

    def clear_bindings(self) -> None:
        for value in self._bindings.values():
            if isinstance(value, Element):
                value.discard()
        self._bindings.clear()
        self.meta.clear()

    def __getitem__(self, key: str) -> Any:
        value = self._bindings[key]
        if isinstance(value, Element):
            return value.get()
        return value

    def __setitem__(self, key: str, value: Any) -> None:
        current = self._bindings.get(key)
        if isinstance(current, Element):
            current.set(value)
        else:
            self._bindings[key] = value

    def __delitem__(self, key: str) -> None:
        value = self._bindings.pop(key)
        if isinstance(value, Element):
            value.discard()

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._bindings))

    def __len__(self) -> int:
        return len(self._bindings)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_dict()!r})"

    def to_dict(self) -> Dict[str, Any]:
        """Plain nested dict of current values."""
        result = {}
        for key, value in self._bindings.items():
            if isinstance(value, Element):
                value = value.to_python()
            elif isinstance(value, Model):
                value = value.to_dict()
            result[key] = value
        return result


def _run_validate(hook, element: "Element", value: Any) -> None:
    if hook is None or hook.validate is None:
        return
    result = hook.validate(element, value)
    if result is not None and not result:
        raise ValidationFailed(f"invalid value {value!r} for '{element.key}'")


class Element:
    """
    Live binding of one schema node.

    Properties:
        expr: Source Expression
        key: Binding key on the host
        fields: Nested bindings contributed by transform hooks
        configurable: False when a config statement disables writes
        default: Value used when nothing was assigned
        invocable: get() returns an async callable
    """

    def __init__(self, expr, value: Any = None, subscribe: bool = True):
        self.expr = expr
        self.key = expr.key
        self.fields = Model()
        self.fields._owner = weakref.ref(self)
        self.configurable = True
        self.default = None
        self.invocable = False
        self._hook = None
        self._value = None
        self._live = subscribe
        self._followed: List[Any] = []
        self._materialize(value)
        if subscribe:
            expr.subscribe(self)

    @property
    def meta(self) -> Dict[str, Any]:
        return self.fields.meta

    @property
    def is_leaf(self) -> bool:
        return len(self.fields) == 0

    @property
    def nested(self) -> bool:
        return not self.is_leaf and self._value is None

    # ------------------------------------------------------------------
    # Materialization
    # ------------------------------------------------------------------

    def _inherited_config(self) -> Any:
        node = self.expr.parent
        while node is not None:
            statement = node.child('config')
            if statement is not None:
                return statement.argument
            node = node.parent
        return None

    def _clear(self) -> None:
        self._unfollow()
        self.fields.clear_bindings()
        self._value = None

    def _materialize(self, value: Any) -> None:
        self._clear()
        try:
            transform = self.expr.resolve('transform')
            if transform is not None:
                transform(self.expr, self)

            hook = self.expr.resolve('element')
            self._hook = hook
            self.invocable = bool(hook is not None and hook.invocable)

            config = self.meta.get('config')
            if config is None:
                config = self.expr.resolve('config')
            if config is None:
                config = self._inherited_config()
            self.configurable = config not in _FALSE_VALUES

            self.default = self.meta.get('default', self.expr.resolve('default'))
            if value is not None:
                self._load(value)
            elif self.default is not None:
                self._load(self.default)
                if self.is_leaf:
                    _run_validate(self._hook, self, self._value)
        except Exception:
            self._clear()
            raise

    def _load(self, value: Any) -> None:
        """Store without configurability or validation checks."""
        if self._hook is not None and self._hook.set is not None:
            value = self._hook.set(self, value)
        self._store(value, strict=False)

    def _store(self, value: Any, strict: bool) -> None:
        if isinstance(value, Mapping) and not self.is_leaf:
            unknown = [key for key in value if key not in self.fields]
            if unknown:
                raise ValidationFailed(f"unknown field(s) {unknown} for '{self.key}'")
            for key, item in value.items():
                if item is None:
                    continue
                field = self.fields.binding(key)
                if field is None:
                    self.fields[key] = item
                elif strict:
                    field.set(item)
                else:
                    field._load(item)
            return
        if strict:
            if not self.is_leaf:
                raise ValidationFailed(f"'{self.key}' expects a mapping, got {value!r}")
            _run_validate(self._hook, self, value)
        self._value = value

    def changed(self, owner, child) -> None:
        """Re-materialize after the source Expression was extended."""
        logger.debug("re-transforming '%s' after '%s' was added", self.key, child.keyword)
        self._materialize(self._snapshot())

    def _snapshot(self) -> Any:
        value = self.value
        if self.nested:
            return {key: item for key, item in value.items() if item is not None}
        return value

    def _restore(self, value: Any) -> None:
        """Put back a value taken from self.value, unset fields included."""
        if isinstance(value, dict) and self.nested:
            for key, item in value.items():
                field = self.fields.binding(key)
                if field is None:
                    self.fields[key] = item
                else:
                    field._restore(item)
        else:
            self._value = value

    def follow(self, expr) -> None:
        """
        Also re-materialize when expr is extended.

        Used by transform hooks that copy fields from another node, such as
        a grouping expanded by "uses". Dropped on the next materialization.
        """
        if not self._live or expr is self.expr:
            return
        expr.subscribe(self)
        self._followed.append(expr)

    def _unfollow(self) -> None:
        for expr in self._followed:
            expr.unsubscribe(self)
        self._followed = []

    def discard(self) -> None:
        """Unsubscribe this Element and all nested Elements."""
        self.expr.unsubscribe(self)
        self._unfollow()
        for key in self.fields:
            field = self.fields.binding(key)
            if field is not None:
                field.discard()

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    @property
    def value(self) -> Any:
        """Inner value: the stored value, or a dict of field values."""
        if self.nested:
            return {
                key: field.value if field is not None else self.fields.raw(key)
                for key, field in ((key, self.fields.binding(key)) for key in self.fields)
            }
        return self._value

    def to_python(self) -> Any:
        if self.nested:
            return self.fields.to_dict()
        if isinstance(self._value, list):
            return [item.to_dict() if isinstance(item, Model) else item for item in self._value]
        return self._value

    def get(self) -> Any:
        getter = self._hook.get if self._hook is not None else None

        if self.invocable:
            async def invoke(*args, **kwargs):
                if getter is not None:
                    result = getter(self, *args, **kwargs)
                elif callable(self._value):
                    result = self._value(*args, **kwargs)
                else:
                    result = self.value
                if inspect.isawaitable(result):
                    result = await result
                return result
            return invoke

        if getter is not None:
            return getter(self)
        if self.nested:
            return self.fields
        return self._value

    def set(self, value: Any) -> None:
        """
        Assign a new value.

        Raises:
            ReadOnlyError: If the element is not configurable
            ValidationFailed: If the element hook rejects the value
        """
        if not self.configurable:
            raise ReadOnlyError(f"'{self.key}' is not configurable")
        hook = self._hook
        if hook is not None and hook.set is not None:
            value = hook.set(self, value)
        previous = self.value
        try:
            self._store(value, strict=True)
        except SchemaError:
            self._restore(previous)
            raise

    def __repr__(self) -> str:
        return f"<Element {self.key}={self.to_python()!r}>"


def transform(expr, host: Any = None) -> Model:
    """
    Project expr onto host.

    Args:
        expr: Expression to project
        host: Target Model (a new one when None)

    Returns:
        The host

    Raises:
        InvalidTransformInput: If host is not a Model
    """
    if host is None:
        host = Model()
    if not isinstance(host, Model):
        raise InvalidTransformInput(
            f"cannot transform '{expr.keyword}' onto {type(host).__name__}"
        )

    key = expr.key
    hook = expr.resolve('element')
    if hook is None:
        contribute = expr.resolve('transform')
        if contribute is not None:
            contribute(expr, host)
        host.meta[key] = expr.argument
        return host

    prior = host.raw(key)
    if isinstance(prior, Element):
        prior = prior._snapshot()
    element = Element(expr, prior)
    host.bind(key, element)
    return host


def validate(expr, obj: Any) -> Element:
    """
    Validate obj against expr's element hook.

    Raises:
        ValidationFailed: If the hook returns a falsy result other than None
    """
    element = obj if isinstance(obj, Element) else Element(expr, obj, subscribe=False)
    hook = expr.resolve('element')
    _run_validate(hook, element, element.value)
    return element
