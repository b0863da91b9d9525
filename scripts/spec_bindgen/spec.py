"""
Specification module

Reads specification documents and normalizes them into the canonical Spec:
every type-bearing string is parsed into a TypeSpec tree, enum value lists
are materialized and method entries become uniform overload lists.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union
import json

import yaml

from .errors import SpecNormalizationError, TypeSpecSyntaxError
from .parser import FunctionType, TypeName, TypeSpec, parse_type

ANY_ARITY = '*'


@dataclass(frozen=True)
class EnumSpec:
    native_name: str
    values: dict[str, int]


@dataclass(frozen=True)
class FieldSpec:
    type: TypeSpec
    native_name: str
    default: Optional[str] = None


@dataclass(frozen=True)
class RecordSpec:
    native_name: str
    fields: dict[str, FieldSpec]


@dataclass(frozen=True)
class MethodSpec:
    """One overload of a method"""
    sig: FunctionType
    native_name: Optional[str] = None
    suffix: Optional[str] = None


@dataclass(frozen=True)
class ClassSpec:
    native_name: str
    base: Optional[str] = None
    abstract: bool = False
    needs_deref: bool = False
    shared_ptr_wrapped: Optional[str] = None
    iterable: Optional[TypeSpec] = None
    constructors: dict[str, FunctionType] = field(default_factory=dict)
    methods: dict[str, list[MethodSpec]] = field(default_factory=dict)
    static_methods: dict[str, list[MethodSpec]] = field(default_factory=dict)
    properties: dict[str, TypeSpec] = field(default_factory=dict)


@dataclass(frozen=True)
class InterfaceSpec:
    native_name: str
    base: Optional[str] = None
    shared_ptr_wrapped: Optional[str] = None
    methods: dict[str, list[MethodSpec]] = field(default_factory=dict)
    static_methods: dict[str, list[MethodSpec]] = field(default_factory=dict)


@dataclass(frozen=True)
class MixedDataType:
    type: TypeSpec
    getter: str


@dataclass(frozen=True)
class MixedInfoSpec:
    data_types: dict[str, MixedDataType] = field(default_factory=dict)
    unused_data_types: list[str] = field(default_factory=list)
    extra_ctors: list[TypeSpec] = field(default_factory=list)


@dataclass(frozen=True)
class Spec:
    """Canonical specification with all type text parsed"""
    headers: list[str] = field(default_factory=list)
    primitives: list[str] = field(default_factory=list)
    templates: dict[str, Union[int, str]] = field(default_factory=dict)
    type_aliases: dict[str, TypeSpec] = field(default_factory=dict)
    enums: dict[str, EnumSpec] = field(default_factory=dict)
    opaque_types: list[str] = field(default_factory=list)
    key_types: dict[str, TypeSpec] = field(default_factory=dict)
    records: dict[str, RecordSpec] = field(default_factory=dict)
    classes: dict[str, ClassSpec] = field(default_factory=dict)
    interfaces: dict[str, InterfaceSpec] = field(default_factory=dict)
    mixed_info: MixedInfoSpec = field(default_factory=MixedInfoSpec)

    @classmethod
    def load(cls, *paths: str) -> 'Spec':
        """Load and normalize one or more YAML/JSON specification files"""
        return normalize_spec(merge_documents([load_document(p) for p in paths]))

    @classmethod
    def from_dict(cls, data: dict) -> 'Spec':
        """Normalize an already-loaded document"""
        return normalize_spec(data)


def load_document(path: str) -> dict:
    """Read one specification document"""
    with open(path, 'r', encoding='utf-8') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as err:
            raise SpecNormalizationError(path, f'not a valid YAML document: {err}') from err
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise SpecNormalizationError(path, 'top level must be a mapping')
    return data


def merge_documents(docs: list[dict]) -> dict:
    """Merge documents table by table; an entry may only be declared once"""
    merged: dict[str, Any] = {}
    for doc in docs:
        for table, value in doc.items():
            if table not in merged:
                merged[table] = value
            elif isinstance(value, dict) and isinstance(merged[table], dict):
                if table == 'mixedInfo':
                    raise SpecNormalizationError(table, 'may only be given once')
                for name, entry in value.items():
                    if name in merged[table]:
                        raise SpecNormalizationError(f'{table}.{name}', 'declared more than once')
                    merged[table] = {**merged[table], name: entry}
            elif isinstance(value, list) and isinstance(merged[table], list):
                merged[table] = merged[table] + value
            else:
                raise SpecNormalizationError(table, 'conflicting table shapes across documents')
    return merged


def _type(path: str, text: Any) -> TypeSpec:
    """Parse type text, attributing failures to the document path"""
    if not isinstance(text, str):
        raise SpecNormalizationError(path, f'expected a type string, got {type(text).__name__}')
    try:
        return parse_type(text)
    except TypeSpecSyntaxError as err:
        raise SpecNormalizationError(path, str(err)) from err


def _func(path: str, text: Any) -> FunctionType:
    parsed = _type(path, text)
    if not isinstance(parsed, FunctionType):
        raise SpecNormalizationError(path, f'expected a function type, got {text!r}')
    return parsed


def _table(doc: dict, key: str, kind: type) -> Any:
    value = doc.get(key)
    if value is None:
        return kind()
    if not isinstance(value, kind):
        raise SpecNormalizationError(key, f'expected a {kind.__name__}')
    return value


def normalize_spec(doc: dict) -> Spec:
    """Convert a loosely typed document into the canonical Spec"""
    return Spec(
        headers=list(_table(doc, 'headers', list)),
        primitives=list(_table(doc, 'primitives', list)),
        templates=_normalize_templates(_table(doc, 'templates', dict)),
        type_aliases={name: _type(f'typeAliases.{name}', text)
                      for name, text in _table(doc, 'typeAliases', dict).items()},
        enums={name: _normalize_enum(f'enums.{name}', name, raw)
               for name, raw in _table(doc, 'enums', dict).items()},
        opaque_types=list(_table(doc, 'opaqueTypes', list)),
        key_types={name: _type(f'keyTypes.{name}', text)
                   for name, text in _table(doc, 'keyTypes', dict).items()},
        records={name: _normalize_record(f'records.{name}', name, raw)
                 for name, raw in _table(doc, 'records', dict).items()},
        classes={name: _normalize_class(f'classes.{name}', name, raw)
                 for name, raw in _table(doc, 'classes', dict).items()},
        interfaces={name: _normalize_interface(f'interfaces.{name}', name, raw)
                    for name, raw in _table(doc, 'interfaces', dict).items()},
        mixed_info=_normalize_mixed_info(_table(doc, 'mixedInfo', dict)),
    )


def _entry(path: str, raw: Any) -> dict:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise SpecNormalizationError(path, f'expected a mapping, got {type(raw).__name__}')
    return raw


def _normalize_templates(raw: dict) -> dict[str, Union[int, str]]:
    templates = {}
    for name, arity in raw.items():
        if arity in (ANY_ARITY, 'any'):
            templates[name] = ANY_ARITY
        elif isinstance(arity, int) and not isinstance(arity, bool) and arity >= 0:
            templates[name] = arity
        else:
            raise SpecNormalizationError(f'templates.{name}', f'arity must be a count or "*", got {arity!r}')
    return templates


def _normalize_enum(path: str, name: str, raw: dict) -> EnumSpec:
    raw = _entry(path, raw)
    values = raw.get('values')
    if isinstance(values, list):
        values = {value_name: i for i, value_name in enumerate(values)}
    elif not isinstance(values, dict):
        raise SpecNormalizationError(path, 'values must be a list or a mapping')
    return EnumSpec(native_name=raw.get('cppName', name), values=dict(values))


def _normalize_record(path: str, name: str, raw: dict) -> RecordSpec:
    raw = _entry(path, raw)
    fields = {}
    for field_name, raw_field in (raw.get('fields') or {}).items():
        field_path = f'{path}.fields.{field_name}'
        if isinstance(raw_field, str):
            fields[field_name] = FieldSpec(_type(field_path, raw_field), field_name)
        else:
            raw_field = _entry(field_path, raw_field)
            fields[field_name] = FieldSpec(
                type=_type(field_path, raw_field.get('type')),
                native_name=raw_field.get('cppName', field_name),
                default=_normalize_default(raw_field['default']) if 'default' in raw_field else None,
            )
    return RecordSpec(native_name=raw.get('cppName', name), fields=fields)


def _normalize_default(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _normalize_methods(path: str, raw: dict) -> dict[str, list[MethodSpec]]:
    """Normalize a name -> (sig | {sig, suffix, cppName} | list of either) table"""
    out = {}
    for name, entry in (raw or {}).items():
        entries = entry if isinstance(entry, list) else [entry]
        overloads = []
        for i, method in enumerate(entries):
            method_path = f'{path}.{name}' if len(entries) == 1 else f'{path}.{name}[{i}]'
            if isinstance(method, str):
                overloads.append(MethodSpec(_func(method_path, method)))
            elif isinstance(method, dict):
                overloads.append(MethodSpec(
                    sig=_func(method_path, method.get('sig')),
                    native_name=method.get('cppName'),
                    suffix=method.get('suffix'),
                ))
            else:
                raise SpecNormalizationError(method_path, 'expected a signature string or a mapping')
        out[name] = overloads
    return out


def _normalize_constructor(path: str, text: Any) -> FunctionType:
    sig = _func(path, text)
    if sig.ret != TypeName('void'):
        raise SpecNormalizationError(path, 'constructors may not declare a return type')
    return sig


def _normalize_class(path: str, name: str, raw: dict) -> ClassSpec:
    raw = _entry(path, raw)
    iterable = raw.get('iterable')
    return ClassSpec(
        native_name=raw.get('cppName', name),
        base=raw.get('base'),
        abstract=bool(raw.get('abstract', False)),
        needs_deref=bool(raw.get('needsDeref', False)) or bool(raw.get('sharedPtrWrapped')),
        shared_ptr_wrapped=raw.get('sharedPtrWrapped'),
        iterable=_type(f'{path}.iterable', iterable) if iterable else None,
        constructors={ctor: _normalize_constructor(f'{path}.constructors.{ctor}', sig)
                      for ctor, sig in (raw.get('constructors') or {}).items()},
        methods=_normalize_methods(f'{path}.methods', raw.get('methods')),
        static_methods=_normalize_methods(f'{path}.staticMethods', raw.get('staticMethods')),
        properties={prop: _type(f'{path}.properties.{prop}', text)
                    for prop, text in (raw.get('properties') or {}).items()},
    )


def _normalize_interface(path: str, name: str, raw: dict) -> InterfaceSpec:
    raw = _entry(path, raw)
    return InterfaceSpec(
        native_name=raw.get('cppName', name),
        base=raw.get('base'),
        shared_ptr_wrapped=raw.get('sharedPtrWrapped'),
        methods=_normalize_methods(f'{path}.methods', raw.get('methods')),
        static_methods=_normalize_methods(f'{path}.staticMethods', raw.get('staticMethods')),
    )


def _normalize_mixed_info(raw: dict) -> MixedInfoSpec:
    data_types = {}
    for data_type, info in (raw.get('dataTypes') or {}).items():
        path = f'mixedInfo.dataTypes.{data_type}'
        info = _entry(path, info)
        if not isinstance(info.get('getter'), str):
            raise SpecNormalizationError(path, 'getter must be a string')
        data_types[data_type] = MixedDataType(type=_type(path, info.get('type')), getter=info['getter'])
    return MixedInfoSpec(
        data_types=data_types,
        unused_data_types=list(raw.get('unusedDataTypes') or []),
        extra_ctors=[_type(f'mixedInfo.extraCtors[{i}]', text)
                     for i, text in enumerate(raw.get('extraCtors') or [])],
    )
