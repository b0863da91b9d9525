"""
Binder module

Resolves a canonical Spec into the immutable BoundSpec. Binding happens in
two phases: every declared name first gets a placeholder entity, then each
placeholder is filled in, so forward references between entities resolve.
"""

from typing import Callable, Union

from .codegen import as_snake_case
from .errors import BindError
from .model import (
    SHARED_PTR, Arg, BoundSpec, Class, Const, Constructor, Enum, Enumerator, Field, Func,
    InstanceMethod, KeyType, Method, MixedGetter, MixedInfo, Opaque, Pointer, Primitive,
    Property, Ref, RRef, StaticMethod, Struct, Template, Type,
)
from .parser import FunctionType, Modifier, TemplateInstance, TypeName, TypeSpec
from .spec import ANY_ARITY, ClassSpec, InterfaceSpec, MethodSpec, Spec

_MODIFIERS = {'const': Const, 'pointer': Pointer, 'ref': Ref, 'rref': RRef}

# Host-side name of the iterator added to iterable classes
ITER_METHOD = 'iter'


class _Registry:
    """Name tables local to one binder run"""

    def __init__(self):
        self.templates: dict[str, Union[int, str]] = {}
        self.types: dict[str, Type] = {}

    def add_type(self, name: str, type: Type) -> Type:
        if name in self.types:
            raise BindError(f'duplicate type name: {name}')
        self.types[name] = type
        return type

    def resolve(self, spec: TypeSpec, where: str) -> Type:
        """Resolve a TypeSpec tree into a Type referencing registered entities"""
        try:
            return self._resolve(spec)
        except BindError as err:
            raise BindError(f'{where}: {err}') from None

    def _resolve(self, spec: TypeSpec) -> Type:
        if isinstance(spec, FunctionType):
            return Func(
                self._resolve(spec.ret),
                [Arg(a.name, self._resolve(a.type)) for a in spec.args],
                spec.is_const,
                spec.is_noexcept,
                spec.is_off_thread,
            )

        if isinstance(spec, Modifier):
            return _MODIFIERS[spec.kind](self._resolve(spec.inner))

        if isinstance(spec, TypeName):
            if spec.name not in self.types:
                raise BindError(f'no such type: {spec.name}')
            return self.types[spec.name]

        if isinstance(spec, TemplateInstance):
            if spec.name not in self.templates:
                raise BindError(f'no such template: {spec.name}')
            arity = self.templates[spec.name]
            if arity != ANY_ARITY and len(spec.args) != arity:
                raise BindError(f'template {spec.name} takes {arity} args, got {len(spec.args)}')
            return Template(spec.name, [self._resolve(a) for a in spec.args])

        raise BindError(f'not a type spec: {spec!r}')


def _add_methods(reg: _Registry, on: Class, make: Callable[..., Method],
                 methods: dict[str, list[MethodSpec]], table: str):
    for name, overloads in methods.items():
        for overload in overloads:
            unique_name = f'{name}_{overload.suffix}' if overload.suffix else name
            sig = reg.resolve(overload.sig, f'{on.name}.{table}.{unique_name}')
            on.methods.append(make(on, name, unique_name, overload.native_name or name, sig))


def _link_base(reg: _Registry, cls: Class, base_name: str, roots: list[Class]):
    if not base_name:
        roots.append(cls)
        return
    base = reg.types.get(base_name)
    if base is None:
        raise BindError(f'{cls.name} has unknown base {base_name}')
    if not isinstance(base, Class):
        raise BindError(f'Bases must be classes, but {base_name} (base of {cls.name}) is a {base.kind}')
    cls.base = base
    base.subclasses.append(cls)


def _bind_class(reg: _Registry, cls: Class, raw: Union[ClassSpec, InterfaceSpec], roots: list[Class]):
    cls.native_name = raw.native_name
    _add_methods(reg, cls, InstanceMethod, raw.methods, 'methods')
    _add_methods(reg, cls, StaticMethod, raw.static_methods, 'staticMethods')
    _link_base(reg, cls, raw.base, roots)

    if isinstance(raw, InterfaceSpec):
        return

    if raw.iterable is not None:
        cls.iterable = reg.resolve(raw.iterable, f'{cls.name}.iterable')
    cls.abstract = raw.abstract
    cls.needs_deref = raw.needs_deref

    # Constructors implicitly return the class (or its shared handle)
    ret = Template(SHARED_PTR, [cls]) if cls.shared_ptr_wrapped else cls
    for name, raw_sig in raw.constructors.items():
        sig = reg.resolve(raw_sig, f'{cls.name}.constructors.{name}')
        if not sig.ret.is_void():
            raise BindError(f'{cls.name}.constructors.{name}: constructors may not declare a return type')
        cls.methods.append(Constructor(cls, name, sig.with_return(ret)))

    for name, type_spec in raw.properties.items():
        cls.methods.append(Property(cls, name, reg.resolve(type_spec, f'{cls.name}.properties.{name}')))


def _check_class(cls: Class):
    seen = set()
    for method in cls.methods:
        if method.unique_name in seen:
            raise BindError(f'{cls.name} has duplicate method {method.unique_name}; add a suffix to overloads')
        seen.add(method.unique_name)
        if cls.iterable is not None and not method.is_static and as_snake_case(method.unique_name) == ITER_METHOD:
            raise BindError(f'{cls.name} is iterable, so it may not declare a method named {ITER_METHOD}')
        try:
            method.sig.async_transform()
        except BindError as err:
            raise BindError(f'{method.id}: {err}') from None

    if cls.shared_ptr_wrapped and (cls.base is not None or cls.subclasses):
        raise BindError(f'{cls.name} is shared_ptr wrapped, which is not supported with inheritance')


def _order_classes(roots: list[Class], all_classes: list[Class]) -> list[Class]:
    """Depth-first from each root so every base precedes its subclasses"""
    ordered: list[Class] = []
    visited: set[int] = set()

    def visit(cls: Class):
        if id(cls) in visited:
            raise BindError(f'base class loop detected on {cls.name}')
        visited.add(id(cls))
        ordered.append(cls)
        for sub in cls.subclasses:
            visit(sub)

    for root in roots:
        visit(root)

    unreached = [c.name for c in all_classes if id(c) not in visited]
    if unreached:
        raise BindError(f'base class loop detected on {", ".join(unreached)}')
    return ordered


def bind_model(spec: Spec) -> BoundSpec:
    """Resolve a canonical Spec into a sealed BoundSpec"""
    reg = _Registry()
    out = BoundSpec()
    out.headers = list(spec.headers)
    roots: list[Class] = []

    reg.templates.update(spec.templates)

    for name in spec.primitives:
        reg.add_type(name, Primitive(name))

    declared: list[tuple[Class, Union[ClassSpec, InterfaceSpec]]] = []
    for table, is_interface in ((spec.classes, False), (spec.interfaces, True)):
        for name, raw in table.items():
            cls = reg.add_type(name, Class(name, is_interface=is_interface))
            if raw.shared_ptr_wrapped:
                cls.shared_ptr_wrapped = True
                reg.add_type(raw.shared_ptr_wrapped, Template(SHARED_PTR, [cls]))
            declared.append((cls, raw))

    for name, raw in spec.enums.items():
        enum = reg.add_type(name, Enum(name))
        enum.native_name = raw.native_name
        enum.enumerators = [Enumerator(n, v) for n, v in raw.values.items()]
        out.enums.append(enum)

    for name in spec.records:
        out.records.append(reg.add_type(name, Struct(name)))
    for name in spec.key_types:
        out.key_types.append(reg.add_type(name, KeyType(name)))
    for name in spec.opaque_types:
        out.opaque_types.append(reg.add_type(name, Opaque(name)))

    for name, type_spec in spec.type_aliases.items():
        reg.add_type(name, reg.resolve(type_spec, f'typeAliases.{name}'))

    # Placeholders exist for every name; fill them in.
    for struct in out.records:
        raw = spec.records[struct.name]
        struct.native_name = raw.native_name
        for field_name, field in raw.fields.items():
            type = reg.resolve(field.type, f'{struct.name}.fields.{field_name}')
            # Optional and Nullable fields are never required
            required = field.default is None and not (type.is_optional() or type.is_nullable())
            struct.fields.append(Field(field_name, field.native_name, type, required, field.default))

    for key_type in out.key_types:
        key_type.type = reg.resolve(spec.key_types[key_type.name], f'keyTypes.{key_type.name}')

    for cls, raw in declared:
        _bind_class(reg, cls, raw, roots)

    out.classes = _order_classes(roots, [cls for cls, _ in declared])
    for cls in out.classes:
        _check_class(cls)

    getters = [MixedGetter(data_type, info.getter, reg.resolve(info.type, f'mixedInfo.dataTypes.{data_type}'))
               for data_type, info in spec.mixed_info.data_types.items()]
    extra = [reg.resolve(t, f'mixedInfo.extraCtors[{i}]') for i, t in enumerate(spec.mixed_info.extra_ctors)]
    out.mixed_info = MixedInfo(getters, list(spec.mixed_info.unused_data_types), extra + [g.type for g in getters])

    out.types = reg.types
    out.seal()
    return out
