"""
Bound model module

The resolved, cross-referenced object graph produced by the binder. Named
entities are referenced by identity, never by name.
"""

from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Iterator, Mapping, Optional, Sequence, Union

from .errors import BindError

# Reserved characters: '_' joins class and method names into Method.id,
# a leading '_' marks names generated by backends.
SEPARATOR = '_'
RESERVED_PREFIX = '_'

# Designated template names
OPTIONAL = 'util::Optional'
NULLABLE = 'Nullable'
SHARED_PTR = 'std::shared_ptr'
ASYNC_CALLBACK = 'AsyncCallback'
ASYNC_RESULT = 'AsyncResult'
IGNORE_ARGUMENT = 'IgnoreArgument'


class TypeBase:
    """Common queries shared by every resolved type"""
    kind = ''

    def is_template(self, name: Optional[str] = None) -> bool:
        return self.kind == 'Template' and (name is None or self.name == name)

    def is_primitive(self, name: Optional[str] = None) -> bool:
        return self.kind == 'Primitive' and (name is None or self.name == name)

    def is_void(self) -> bool:
        return self.is_primitive('void')

    def _wraps(self, template: str, arg_name: Optional[str]) -> bool:
        if not self.is_template(template):
            return False
        return arg_name is None or getattr(self.args[0], 'name', None) == arg_name

    def is_optional(self, arg_name: Optional[str] = None) -> bool:
        return self._wraps(OPTIONAL, arg_name)

    def is_nullable(self, arg_name: Optional[str] = None) -> bool:
        return self._wraps(NULLABLE, arg_name)

    def is_function(self) -> bool:
        """True for function types and wrappers around them (record callback fields)"""
        return False

    def remove_const_ref(self) -> 'Type':
        t = self
        while t.kind in ('Const', 'Ref', 'RRef'):
            t = t.type
        return t


class WrapperType(TypeBase):
    suffix = ''

    def __init__(self, type: 'Type'):
        self.type = type

    def is_function(self) -> bool:
        return self.type.is_function()

    def __str__(self):
        return f'{self.type}{self.suffix}'


class Const(WrapperType):
    kind = 'Const'
    suffix = ' const'


class Pointer(WrapperType):
    kind = 'Pointer'
    suffix = '*'


class Ref(WrapperType):
    kind = 'Ref'
    suffix = '&'


class RRef(WrapperType):
    kind = 'RRef'
    suffix = '&&'


class Arg:
    def __init__(self, name: str, type: 'Type'):
        if name.startswith(RESERVED_PREFIX):
            raise BindError(f'argument "{name}" starts with a {RESERVED_PREFIX!r}, but that is reserved')
        self.name = name
        self.type = type

    def __str__(self):
        return f'{self.name}: {self.type}'


# Error carriers accepted as the last argument of an async callback
def _is_async_error_arg(t: 'Type') -> bool:
    return (t.is_optional('AppError') or t.is_optional('Status') or t.is_primitive('Status')
            or t.is_nullable('std::error_code') or t.is_nullable('std::exception_ptr'))


class Func(TypeBase):
    kind = 'Func'

    def __init__(self, ret: 'Type', args: Sequence[Arg], is_const: bool = False,
                 is_noexcept: bool = False, is_off_thread: bool = False):
        self.ret = ret
        self.args = tuple(args)
        self.is_const = is_const
        self.is_noexcept = is_noexcept
        self.is_off_thread = is_off_thread

    def __str__(self):
        args = ', '.join(str(a) for a in self.args)
        flags = ((' const' if self.is_const else '') + (' noexcept' if self.is_noexcept else '')
                 + (' off_thread' if self.is_off_thread else ''))
        return f'({args}){flags} -> {self.ret}'

    def is_function(self) -> bool:
        return True

    def with_return(self, ret: 'Type') -> 'Func':
        return Func(ret, self.args, self.is_const, self.is_noexcept, self.is_off_thread)

    def args_skipping_ignored(self) -> list[Arg]:
        return [a for a in self.args if not a.type.is_template(IGNORE_ARGUMENT)]

    def async_transform(self) -> Optional['Func']:
        """Rewrite a trailing-AsyncCallback signature into one returning AsyncResult

        (amount: int64_t, cb: AsyncCallback<(err: util::Optional<AppError>) -> void>) -> void
            becomes (amount: int64_t) -> AsyncResult<void>
        Returns None for signatures that are not async.
        """
        if not self.ret.is_void() or not self.args:
            return None
        last = self.args[-1].type.remove_const_ref()
        if not last.is_template(ASYNC_CALLBACK):
            return None

        cb = last.args[0]
        if cb.kind != 'Func' or not cb.ret.is_void():
            raise BindError(f'{ASYNC_CALLBACK} must wrap a void function, got {cb}')
        if len(cb.args) not in (1, 2):
            raise BindError(f'{ASYNC_CALLBACK} function must take (error) or (result, error), got {cb}')
        if not _is_async_error_arg(cb.args[-1].type):
            raise BindError(
                f'Last arg to {ASYNC_CALLBACK} must be one of util::Optional<AppError>, '
                f'util::Optional<Status>, Status, Nullable<std::error_code> or '
                f'Nullable<std::exception_ptr>, but got {cb.args[-1].type}')

        res = self.ret
        if len(cb.args) == 2:
            res = cb.args[0].type.remove_const_ref()
            if res.is_optional() or res.is_nullable():
                res = res.args[0]
        return Func(Template(ASYNC_RESULT, [res]), self.args[:-1],
                    self.is_const, self.is_noexcept, self.is_off_thread)

    def async_transform_or_self(self) -> 'Func':
        return self.async_transform() or self


class Template(TypeBase):
    kind = 'Template'

    def __init__(self, name: str, args: Sequence['Type']):
        self.name = name
        self.args = tuple(args)

    def __str__(self):
        return f'{self.name}<{", ".join(str(a) for a in self.args)}>'

    def is_function(self) -> bool:
        return any(a.is_function() for a in self.args)


class Primitive(TypeBase):
    kind = 'Primitive'

    def __init__(self, name: str):
        self.name = name

    def __str__(self):
        return self.name


class NamedType(TypeBase):
    """Entity declared by name in one of the specification tables"""

    def __init__(self, name: str):
        if SEPARATOR in name:
            raise BindError(f"Illegal type name '{name}': '{SEPARATOR}' is not allowed.")
        self.name = name
        self.native_name = name

    def __str__(self):
        return self.name

    def __repr__(self):
        return f'<{self.kind} {self.name}>'


class Opaque(NamedType):
    kind = 'Opaque'


class KeyType(NamedType):
    kind = 'KeyType'
    type: 'Type'


class Enumerator:
    def __init__(self, name: str, value: int):
        self.name = name
        self.value = value


class Enum(NamedType):
    kind = 'Enum'

    def __init__(self, name: str):
        super().__init__(name)
        self.enumerators: list[Enumerator] = []


class Field:
    def __init__(self, name: str, native_name: str, type: 'Type', required: bool,
                 default: Optional[str] = None):
        self.name = name
        self.native_name = native_name
        self.type = type
        self.required = required
        self.default = default


class Struct(NamedType):
    kind = 'Struct'

    def __init__(self, name: str):
        super().__init__(name)
        self.fields: list[Field] = []


class Class(NamedType):
    kind = 'Class'

    def __init__(self, name: str, is_interface: bool = False):
        super().__init__(name)
        self.is_interface = is_interface
        self.abstract = False
        self.base: Optional['Class'] = None
        self.subclasses: list['Class'] = []
        self.methods: list['Method'] = []
        self.shared_ptr_wrapped = False
        self.needs_deref = False
        self.iterable: Optional['Type'] = None

    def root_base(self) -> 'Class':
        cls = self
        while cls.base is not None:
            cls = cls.base
        return cls

    def descendants(self) -> Iterator['Class']:
        for sub in self.subclasses:
            yield sub
            yield from sub.descendants()


Type = Union[Const, Pointer, Ref, RRef, Func, Template, Class, Struct, Primitive, Opaque, KeyType, Enum]

# Every Type variant; consumers that dispatch on type check themselves against this
TYPE_CLASSES = (Const, Pointer, Ref, RRef, Func, Template, Class, Struct, Primitive, Opaque, KeyType, Enum)


class Method(ABC):
    is_static = False
    is_constructor = False
    is_property = False

    def __init__(self, on: Class, name: str, unique_name: str, native_name: str, sig: Func):
        if unique_name.startswith(RESERVED_PREFIX):
            raise BindError(
                f'method "{on.name}.{unique_name}" starts with a {RESERVED_PREFIX!r}, but that is reserved')
        self.on = on
        self.name = name
        self.unique_name = unique_name
        self.native_name = native_name
        self.sig = sig

    @property
    def id(self) -> str:
        """Identifier unique across all classes"""
        return f'{self.on.name}{SEPARATOR}{self.unique_name}'

    @abstractmethod
    def call(self, self_expr: str, *args: str) -> str:
        """C++ expression invoking the method on self_expr"""


class InstanceMethod(Method):
    def call(self, self_expr: str, *args: str) -> str:
        return f'{self_expr}.{self.native_name}({", ".join(args)})'


class StaticMethod(Method):
    is_static = True

    def call(self, self_expr: str, *args: str) -> str:
        return f'{self.on.native_name}::{self.native_name}({", ".join(args)})'


class Constructor(StaticMethod):
    is_constructor = True

    def __init__(self, on: Class, name: str, sig: Func):
        super().__init__(on, name, name, on.native_name, sig)

    def call(self, self_expr: str, *args: str) -> str:
        if self.on.shared_ptr_wrapped:
            return f'std::make_shared<{self.on.native_name}>({", ".join(args)})'
        return f'{self.on.native_name}({", ".join(args)})'


class Property(InstanceMethod):
    is_property = True

    def __init__(self, on: Class, name: str, type: 'Type'):
        super().__init__(on, name, name, name, Func(type, [], is_const=True))

    @property
    def type(self) -> 'Type':
        return self.sig.ret


class MixedGetter:
    def __init__(self, data_type: str, getter: str, type: 'Type'):
        self.data_type = data_type
        self.getter = getter
        self.type = type


class MixedInfo:
    def __init__(self, getters: list[MixedGetter], unused_data_types: list[str], ctors: list['Type']):
        self.getters = getters
        self.unused_data_types = unused_data_types
        self.ctors = ctors


class BoundSpec:
    """Fully resolved specification

    Aliases are resolved and erased: nothing refers to them after binding.
    Base classes are at an earlier index in `classes` than their subclasses.
    """

    def __init__(self):
        self.headers: list[str] = []
        self.classes: list[Class] = []
        self.records: list[Struct] = []
        self.key_types: list[KeyType] = []
        self.enums: list[Enum] = []
        self.opaque_types: list[Opaque] = []
        self.mixed_info = MixedInfo([], [], [])
        self.types: Mapping[str, Type] = {}

    def seal(self):
        """Freeze every collection in the graph; called once binding is complete"""
        for cls in self.classes:
            cls.subclasses = tuple(cls.subclasses)
            cls.methods = tuple(cls.methods)
        for struct in self.records:
            struct.fields = tuple(struct.fields)
        for enum in self.enums:
            enum.enumerators = tuple(enum.enumerators)
        self.headers = tuple(self.headers)
        self.classes = tuple(self.classes)
        self.records = tuple(self.records)
        self.key_types = tuple(self.key_types)
        self.enums = tuple(self.enums)
        self.opaque_types = tuple(self.opaque_types)
        self.mixed_info = MixedInfo(tuple(self.mixed_info.getters), tuple(self.mixed_info.unused_data_types),
                                    tuple(self.mixed_info.ctors))
        self.types = MappingProxyType(dict(self.types))

    def to_dict(self) -> dict:
        """Plain nested data describing the whole graph, in table order"""
        def method(m: Method) -> dict:
            kind = ('constructor' if m.is_constructor else 'property' if m.is_property
                    else 'static' if m.is_static else 'instance')
            out = {'name': m.name, 'unique_name': m.unique_name, 'native_name': m.native_name,
                   'kind': kind, 'sig': str(m.sig)}
            transformed = m.sig.async_transform()
            if transformed is not None:
                out['async'] = str(transformed)
            return out

        return {
            'headers': list(self.headers),
            'classes': [{
                'name': c.name,
                'native_name': c.native_name,
                'interface': c.is_interface,
                'abstract': c.abstract,
                'base': c.base.name if c.base else None,
                'subclasses': [s.name for s in c.subclasses],
                'shared_ptr_wrapped': c.shared_ptr_wrapped,
                'needs_deref': c.needs_deref,
                'iterable': str(c.iterable) if c.iterable is not None else None,
                'methods': [method(m) for m in c.methods],
            } for c in self.classes],
            'records': [{
                'name': r.name,
                'native_name': r.native_name,
                'fields': [{'name': f.name, 'native_name': f.native_name, 'type': str(f.type),
                            'required': f.required, 'default': f.default} for f in r.fields],
            } for r in self.records],
            'key_types': [{'name': k.name, 'type': str(k.type)} for k in self.key_types],
            'enums': [{'name': e.name, 'native_name': e.native_name,
                       'enumerators': [[x.name, x.value] for x in e.enumerators]} for e in self.enums],
            'opaque_types': [o.name for o in self.opaque_types],
            'mixed_info': {
                'getters': [{'data_type': g.data_type, 'getter': g.getter, 'type': str(g.type)}
                            for g in self.mixed_info.getters],
                'unused_data_types': list(self.mixed_info.unused_data_types),
                'ctors': [str(t) for t in self.mixed_info.ctors],
            },
            'types': {name: str(t) for name, t in self.types.items()},
        }
