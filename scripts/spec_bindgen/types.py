"""
Type conversion module

The type-directed conversion protocol shared by every backend. TypeConverter
walks a resolved Type and emits an expression converting a value between the
native library and the host runtime; the backend supplies the emission
vocabulary as a ConversionRules instance.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, TYPE_CHECKING

from .errors import ConversionError
from .model import (
    TYPE_CLASSES, Class, Const, Enum as EnumType, Func, KeyType, Opaque, Pointer, Primitive,
    Ref, RRef, Struct, Template, Type,
)

if TYPE_CHECKING:
    from .model import BoundSpec


class Direction(Enum):
    TO_HOST = 'to_host'
    FROM_HOST = 'from_host'


@dataclass
class ConversionContext:
    """Context for one conversion step"""
    conv: 'TypeConverter'
    type: Type
    expr: str             # Native value (to host) or host value (from host)

    def to_host(self, type: Type, expr: str) -> str:
        """Recurse towards the host"""
        return self.conv.to_host(type, expr)

    def from_host(self, type: Type, expr: str) -> str:
        """Recurse away from the host"""
        return self.conv.from_host(type, expr)

    @property
    def spec(self) -> Optional['BoundSpec']:
        return self.conv.spec


class TypeHandler(ABC):
    """Emission rule for one primitive or template name"""

    @abstractmethod
    def to_host(self, ctx: ConversionContext) -> str:
        """Generate an expression converting a native value to the host"""

    @abstractmethod
    def from_host(self, ctx: ConversionContext) -> str:
        """Generate an expression converting a host value to native"""


class ConversionRules(ABC):
    """A backend's emission vocabulary

    Subclasses must implement a rule for every entity kind; a subclass missing
    one cannot be instantiated. Primitive and template rules are looked up by
    name in the `primitives` and `templates` tables.
    """

    def __init__(self):
        self.primitives: dict[str, TypeHandler] = {}
        self.templates: dict[str, TypeHandler] = {}

    @abstractmethod
    def pointer_to_host(self, ctx: ConversionContext) -> str: ...

    @abstractmethod
    def pointer_from_host(self, ctx: ConversionContext) -> str: ...

    @abstractmethod
    def class_to_host(self, ctx: ConversionContext) -> str: ...

    @abstractmethod
    def class_from_host(self, ctx: ConversionContext) -> str: ...

    @abstractmethod
    def struct_to_host(self, ctx: ConversionContext) -> str: ...

    @abstractmethod
    def struct_from_host(self, ctx: ConversionContext) -> str: ...

    @abstractmethod
    def enum_to_host(self, ctx: ConversionContext) -> str: ...

    @abstractmethod
    def enum_from_host(self, ctx: ConversionContext) -> str: ...

    @abstractmethod
    def opaque_to_host(self, ctx: ConversionContext) -> str: ...

    @abstractmethod
    def opaque_from_host(self, ctx: ConversionContext) -> str: ...

    @abstractmethod
    def key_type_to_host(self, ctx: ConversionContext) -> str: ...

    @abstractmethod
    def key_type_from_host(self, ctx: ConversionContext) -> str: ...

    @abstractmethod
    def func_to_host(self, ctx: ConversionContext) -> str:
        """Wrap a native callable so the host can invoke it"""

    @abstractmethod
    def func_from_host(self, ctx: ConversionContext) -> str:
        """Wrap a host callable so native code can invoke it"""

    def rref_from_host(self, ctx: ConversionContext) -> str:
        """Rvalue reference out of the host; override to move class values"""
        return ctx.from_host(ctx.type.type, ctx.expr)


class TypeConverter:
    """Recursive to_host/from_host walk over resolved types"""

    def __init__(self, rules: ConversionRules, spec: Optional['BoundSpec'] = None):
        self.rules = rules
        self.spec = spec

    def register_primitive(self, name: str, handler: TypeHandler):
        """Register or replace the rule for a primitive"""
        self.rules.primitives[name] = handler

    def register_template(self, name: str, handler: TypeHandler):
        """Register or replace the rule for a template"""
        self.rules.templates[name] = handler

    def has_handler(self, type: Type) -> bool:
        """Check whether a primitive or template has a rule"""
        if isinstance(type, Primitive):
            return type.name in self.rules.primitives
        if isinstance(type, Template):
            return type.name in self.rules.templates
        return True

    def convert(self, type: Type, expr: str, direction: Direction) -> str:
        if direction is Direction.TO_HOST:
            return self.to_host(type, expr)
        return self.from_host(type, expr)

    def to_host(self, type: Type, expr: str) -> str:
        """Generate an expression converting native `expr` of `type` to the host"""
        ctx = ConversionContext(self, type, expr)
        return _TO_HOST[type.__class__](self, ctx)

    def from_host(self, type: Type, expr: str) -> str:
        """Generate an expression converting host `expr` to a native `type`"""
        ctx = ConversionContext(self, type, expr)
        return _FROM_HOST[type.__class__](self, ctx)

    def _unwrap_to_host(self, ctx: ConversionContext) -> str:
        return self.to_host(ctx.type.type, ctx.expr)

    def _unwrap_from_host(self, ctx: ConversionContext) -> str:
        return self.from_host(ctx.type.type, ctx.expr)

    def _primitive(self, ctx: ConversionContext) -> TypeHandler:
        handler = self.rules.primitives.get(ctx.type.name)
        if handler is None:
            raise ConversionError(f"unexpected primitive type '{ctx.type.name}'")
        return handler

    def _template(self, ctx: ConversionContext) -> TypeHandler:
        handler = self.rules.templates.get(ctx.type.name)
        if handler is None:
            raise ConversionError(f'unknown template {ctx.type.name}')
        return handler


_Rule = Callable[[TypeConverter, ConversionContext], str]

_TO_HOST: dict[type, _Rule] = {
    Const: TypeConverter._unwrap_to_host,
    Ref: TypeConverter._unwrap_to_host,
    RRef: TypeConverter._unwrap_to_host,
    Pointer: lambda c, ctx: c.rules.pointer_to_host(ctx),
    Template: lambda c, ctx: c._template(ctx).to_host(ctx),
    Primitive: lambda c, ctx: c._primitive(ctx).to_host(ctx),
    Func: lambda c, ctx: c.rules.func_to_host(ctx),
    Class: lambda c, ctx: c.rules.class_to_host(ctx),
    Struct: lambda c, ctx: c.rules.struct_to_host(ctx),
    EnumType: lambda c, ctx: c.rules.enum_to_host(ctx),
    Opaque: lambda c, ctx: c.rules.opaque_to_host(ctx),
    KeyType: lambda c, ctx: c.rules.key_type_to_host(ctx),
}

_FROM_HOST: dict[type, _Rule] = {
    Const: TypeConverter._unwrap_from_host,
    Ref: TypeConverter._unwrap_from_host,
    RRef: lambda c, ctx: c.rules.rref_from_host(ctx),
    Pointer: lambda c, ctx: c.rules.pointer_from_host(ctx),
    Template: lambda c, ctx: c._template(ctx).from_host(ctx),
    Primitive: lambda c, ctx: c._primitive(ctx).from_host(ctx),
    Func: lambda c, ctx: c.rules.func_from_host(ctx),
    Class: lambda c, ctx: c.rules.class_from_host(ctx),
    Struct: lambda c, ctx: c.rules.struct_from_host(ctx),
    EnumType: lambda c, ctx: c.rules.enum_from_host(ctx),
    Opaque: lambda c, ctx: c.rules.opaque_from_host(ctx),
    KeyType: lambda c, ctx: c.rules.key_type_from_host(ctx),
}

# A new Type variant must get a rule in both directions before anything imports this module
for _table in (_TO_HOST, _FROM_HOST):
    _missing = set(TYPE_CLASSES) ^ set(_table)
    if _missing:
        raise ImportError(f'conversion dispatch out of sync with model: {sorted(c.__name__ for c in _missing)}')
