"""
Extensions and the Extension Registry.

An Extension is itself an Expression ("extension <keyword>") that describes
how statements using <keyword> are built and projected:

    - argument: ArgumentSpec, or None when the keyword takes no argument
    - scope: admitted child keywords with their Cardinality
    - construct(node): called once a node is fully built
    - transform(node, element): contributes fields to a projected Element
    - element: ElementHook with get/set/validate functions
    - default / config: metadata for projected Elements

Hooks are read from an explicit table (see Extension.resolve), never looked
up reflectively by name.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from .config import settings
from .errors import DuplicateExtension, InvalidSchema
from .expressions import Expression, normalize_scope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArgumentSpec:
    """Argument shape declared by an Extension."""
    kind: str
    optional: bool = False


@dataclass(frozen=True)
class ElementHook:
    """
    Binding behavior for projected Elements.

    Properties:
        get: get(element) -> value, replaces the stored value on read
        set: set(element, value) -> stored value, converts on write
        validate: validate(element, value) -> falsy rejects, None passes
        invocable: Reads return an async callable instead of a value
    """
    get: Optional[Callable[..., Any]] = None
    set: Optional[Callable[..., Any]] = None
    validate: Optional[Callable[..., Any]] = None
    invocable: bool = False


class Extension(Expression):
    """
    A grammar definition for one keyword.

    Example:
        Extension("leaf", argument="name", scope={"type": "1", "default": "0..1"})

    Extensions declared in schema text ("extension foo { argument value; }")
    are built through the "extension" meta-extension and resolve lexically.
    """

    def __init__(
        self,
        name: str,
        argument: Union[ArgumentSpec, str, None] = None,
        scope: Optional[Dict[str, Any]] = None,
        construct: Optional[Callable[..., Any]] = None,
        transform: Optional[Callable[..., Any]] = None,
        element: Optional[ElementHook] = None,
        default: Any = None,
        config: Any = None,
        factory: Optional[Callable[..., Expression]] = None,
        parent: Optional[Expression] = None,
    ):
        super().__init__('extension', name, parent)
        self.argument_kind = 'name'
        if isinstance(argument, str):
            argument = ArgumentSpec(argument)
        self.argument_spec: Optional[ArgumentSpec] = argument
        self.child_scope = normalize_scope(scope)
        self.construct = construct
        self.transformer = transform
        self.element = element
        self.default = default
        self.config = config
        self.factory = factory

    @property
    def name(self) -> str:
        return self.argument

    def resolve(self, kw: str, arg: Optional[str] = None) -> Any:
        if arg is None:
            table = {
                'argument': self.argument_spec,
                'scope': self.child_scope,
                'construct': self.construct,
                'transform': self.transformer,
                'element': self.element,
                'default': self.default,
                'config': self.config,
                'factory': self.factory,
            }
            return table.get(kw)
        return super().resolve(kw, arg)


class ExtensionRegistry:
    """Process-wide keyword → Extension mapping."""

    def __init__(self) -> None:
        self._extensions: Dict[str, Extension] = {}

    def register(self, extension: Extension, override: bool = False) -> Extension:
        """
        Register an Extension under its own keyword.

        Raises:
            InvalidSchema: If extension is not an Extension
            DuplicateExtension: If the keyword is taken and override is off
        """
        if not isinstance(extension, Extension):
            raise InvalidSchema(f"cannot register {extension!r}: not an extension")
        name = extension.name
        if name in self._extensions and not (override or settings.allow_override):
            raise DuplicateExtension(name)
        self._extensions[name] = extension
        logger.debug("registered extension '%s'", name)
        return extension

    def get(self, keyword: str) -> Optional[Extension]:
        return self._extensions.get(keyword)

    def keywords(self) -> List[str]:
        return list(self._extensions)

    def reset(self) -> None:
        self._extensions.clear()

    def __contains__(self, keyword: str) -> bool:
        return keyword in self._extensions

    def __len__(self) -> int:
        return len(self._extensions)


# Global registry instance
registry = ExtensionRegistry()


def register(extension: Extension, override: bool = False) -> Extension:
    return registry.register(extension, override=override)


def reset() -> None:
    registry.reset()
