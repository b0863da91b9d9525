"""
Code generation utilities

Provides the indentation-aware text builder, naming helpers and the native
(C++) spelling of resolved types.
"""

import re

from .errors import ConversionError
from .model import Field, Method, NamedType, Type


class CodeGen:
    """Code generation helper with indentation support"""

    def __init__(self):
        self._lines: list[str] = []
        self._indent: int = 0
        self._indent_str: str = '    '  # 4 spaces

    def line(self, text: str = ''):
        """Add a line with current indentation"""
        if text:
            self._lines.append(self._indent_str * self._indent + text)
        else:
            self._lines.append('')

    def lines(self, *texts: str):
        """Add multiple lines"""
        for text in texts:
            self.line(text)

    def indent(self):
        self._indent += 1

    def dedent(self):
        if self._indent > 0:
            self._indent -= 1

    def block(self, header: str, footer: str = '}'):
        """Context manager for code blocks"""
        return _BlockContext(self, header, footer)

    def output(self) -> str:
        """Get generated code as string"""
        return '\n'.join(self._lines)


class _BlockContext:
    """Context manager for indented code blocks"""

    def __init__(self, gen: CodeGen, header: str, footer: str):
        self._gen = gen
        self._header = header
        self._footer = footer

    def __enter__(self):
        self._gen.line(self._header)
        self._gen.indent()
        return self

    def __exit__(self, *args):
        self._gen.dedent()
        self._gen.line(self._footer)


def as_snake_case(name: str) -> str:
    """Convert a camelCase spec name to snake_case

    Examples:
        getAny -> get_any
        insertAny_withIndex -> insert_any_with_index
        URLString -> url_string
    """
    name = re.sub(r'([A-Z]+)([A-Z][a-z])', r'\1_\2', name)
    name = re.sub(r'([a-z0-9])([A-Z])', r'\1_\2', name)
    return name.lower()


def as_identifier(name: str) -> str:
    """Flatten a qualified name into a C identifier

    Examples:
        std::shared_ptr -> std_shared_ptr
        util::Optional -> util_Optional
    """
    return re.sub(r'\W+', '_', name).strip('_')


def display_name(entity) -> str:
    """Host-facing name of a bound entity

    Types keep their spec name; methods and fields are snake_case.
    """
    if isinstance(entity, Method):
        return as_snake_case(entity.unique_name)
    if isinstance(entity, Field):
        return as_snake_case(entity.name)
    if isinstance(entity, NamedType):
        return entity.name
    raise TypeError(f'no display name for {entity!r}')


# Spec primitives whose C++ spelling differs from their spec name
PRIMITIVE_SPELLINGS = {
    'count_t': 'size_t',
    'EncryptionKey': 'std::vector<char>',
    'AppError': 'app::AppError',
    'EJson': 'std::string',
    'EJsonObj': 'std::string',
    'EJsonArray': 'std::string',
}

# Templates that only mark their argument and are spelled as it
MARKER_TEMPLATES = ('Nullable', 'IgnoreArgument')

TEMPLATE_SPELLINGS = {
    'AsyncCallback': 'util::UniqueFunction',
}


def cpp_function_type(func) -> str:
    """Signature type of a Func, usable as std::function's template argument"""
    return f'{to_cpp(func.ret)}({", ".join(to_cpp(a.type) for a in func.args)})'


def to_cpp(type: Type) -> str:
    """Spell a resolved type in C++, eg to declare an argument or template parameter"""
    kind = type.kind
    if kind in ('Const', 'Pointer', 'Ref', 'RRef'):
        return f'{to_cpp(type.type)}{type.suffix}'
    if kind == 'Template':
        if type.name == 'AsyncResult':
            raise ConversionError('AsyncResult only exists in transformed signatures and has no C++ spelling')
        if type.name in MARKER_TEMPLATES:
            return to_cpp(type.args[0])
        name = TEMPLATE_SPELLINGS.get(type.name, type.name)
        if name in ('util::UniqueFunction', 'std::function'):
            if len(type.args) != 1 or type.args[0].kind != 'Func':
                raise ConversionError(f'{type} must wrap exactly one function type')
            return f'{name}<{cpp_function_type(type.args[0])}>'
        return f'{name}<{", ".join(to_cpp(a) for a in type.args)}>'
    if kind == 'Primitive':
        return PRIMITIVE_SPELLINGS.get(type.name, type.name)
    if kind in ('Class', 'Struct', 'Enum'):
        return type.native_name
    if kind in ('Opaque', 'KeyType'):
        return type.name
    if kind == 'Func':
        raise ConversionError(
            f'Cannot convert function types to C++ type names: {type}. '
            'Use cpp_function_type() to get a signature type.')
    raise ConversionError(f'unhandled type kind {kind!r}')
