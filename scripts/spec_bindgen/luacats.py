"""
LuaCATS type definition generation module

Generates a .lua file with type annotations for IDE autocompletion.
"""

from typing import TYPE_CHECKING

from .codegen import display_name
from .errors import ConversionError

if TYPE_CHECKING:
    from .model import BoundSpec, Class, Enum, Method, Struct, Type

# Lua reserved keywords
LUA_KEYWORDS = {
    'and', 'break', 'do', 'else', 'elseif', 'end', 'false', 'for',
    'function', 'goto', 'if', 'in', 'local', 'nil', 'not', 'or',
    'repeat', 'return', 'then', 'true', 'until', 'while'
}

PRIMITIVE_TYPES = {
    'void': 'nil',
    'bool': 'boolean',
    'int': 'integer',
    'int32_t': 'integer',
    'uint32_t': 'integer',
    'int64_t': 'integer',
    'uint64_t': 'integer',
    'count_t': 'integer',
    'double': 'number',
    'float': 'number',
    'std::string': 'string',
    'std::string_view': 'string',
    'StringData': 'string',
    'EJson': 'string',
    'EJsonObj': 'string',
    'EJsonArray': 'string',
    'BinaryData': 'string',
    'OwnedBinaryData': 'string',
    'Mixed': 'any',
}

ERROR_PRIMITIVES = ('AppError', 'Status', 'std::error_code', 'std::exception_ptr')

# Templates spelled as their (single) argument
TRANSPARENT_TEMPLATES = (
    'std::shared_ptr', 'util::UniqueFunction', 'std::function', 'AsyncCallback',
    'IgnoreArgument', 'AsyncResult',
)


def lua_name(name: str) -> str:
    """Parameter name that is not a Lua keyword"""
    return f'{name}_' if name in LUA_KEYWORDS else name


class LuaCATSGenerator:
    """Generates LuaCATS type definition files"""

    def __init__(self, spec: 'BoundSpec', module_name: str):
        self.spec = spec
        self.module_name = module_name

    def luacats_type(self, type: 'Type') -> str:
        """LuaCATS spelling of a resolved type"""
        kind = type.kind
        if kind in ('Const', 'Pointer', 'Ref', 'RRef'):
            return self.luacats_type(type.type)
        if kind == 'Primitive':
            if type.name in ERROR_PRIMITIVES:
                return f'{self.module_name}.Error'
            return PRIMITIVE_TYPES.get(type.name, 'any')
        if kind == 'Template':
            return self._template_type(type)
        if kind == 'Func':
            params = ', '.join(f'{lua_name(a.name)}: {self.luacats_type(a.type)}'
                               for a in type.args_skipping_ignored())
            if type.ret.is_void():
                return f'fun({params})'
            return f'fun({params}): {self.luacats_type(type.ret)}'
        if kind in ('Class', 'Struct', 'Enum'):
            return f'{self.module_name}.{display_name(type)}'
        if kind == 'Opaque':
            return 'lightuserdata'
        if kind == 'KeyType':
            return self.luacats_type(type.type)
        raise ConversionError(f'no LuaCATS spelling for {type}')

    def _template_type(self, type: 'Type') -> str:
        name = type.name
        if name in TRANSPARENT_TEMPLATES:
            return self.luacats_type(type.args[0])
        if name in ('util::Optional', 'Nullable'):
            inner = self.luacats_type(type.args[0])
            return inner if inner.endswith('?') or inner == 'any' else f'{inner}?'
        if name == 'std::vector':
            inner = self.luacats_type(type.args[0])
            return f'({inner})[]' if ' ' in inner or '?' in inner else f'{inner}[]'
        if name in ('std::pair', 'std::tuple'):
            return f'[{", ".join(self.luacats_type(a) for a in type.args)}]'
        if name in ('std::map', 'std::unordered_map'):
            key, value = type.args
            return f'table<{self.luacats_type(key)}, {self.luacats_type(value)}>'
        raise ConversionError(f'no LuaCATS spelling for template {name}')

    def generate(self) -> str:
        """Generate complete LuaCATS type definition file"""
        lines = []
        lines.append('---@meta')
        lines.append(f'-- LuaCATS type definitions for {self.module_name}')
        lines.append('-- Auto-generated, do not edit')
        lines.append('')

        lines.append(f'---@class {self.module_name}.Error')
        lines.append('---@field message string')
        lines.append('---@field code integer')
        lines.append('')

        # Generate record types first
        for struct in self.spec.records:
            lines.extend(self._gen_struct(struct))
            lines.append('')

        lines.append(f'local {self.module_name} = {{}}')
        lines.append('')

        for enum in self.spec.enums:
            lines.extend(self._gen_enum(enum))
            lines.append('')

        for cls in self.spec.classes:
            lines.extend(self._gen_class(cls))
            lines.append('')

        lines.append(f'return {self.module_name}')
        return '\n'.join(lines) + '\n'

    def _gen_struct(self, struct: 'Struct') -> list[str]:
        """Generate record type definition"""
        lines = [f'---@class {self.luacats_type(struct)}']
        for field in struct.fields:
            optional = '' if field.required else '?'
            comment = f' Default: {field.default}' if field.default is not None else ''
            lines.append(f'---@field {display_name(field)}{optional} {self.luacats_type(field.type)}{comment}')
        return lines

    def _gen_enum(self, enum: 'Enum') -> list[str]:
        """Generate enum type definition"""
        lines = [f'---@enum {self.luacats_type(enum)}']
        lines.append(f'{self.luacats_type(enum)} = {{')
        for item in enum.enumerators:
            lines.append(f'    {item.name} = {item.value},')
        lines.append('}')
        return lines

    def _gen_class(self, cls: 'Class') -> list[str]:
        """Generate class type definition with its methods"""
        qualified = self.luacats_type(cls)
        header = f'---@class {qualified}'
        if cls.base is not None:
            header += f' : {self.luacats_type(cls.base)}'
        lines = [header]

        for method in cls.methods:
            if method.is_property:
                lines.append(f'---@field {display_name(method)} {self.luacats_type(method.type)}')
        lines.append(f'{qualified} = {{}}')

        for method in cls.methods:
            if not method.is_property:
                lines.append('')
                lines.extend(self._gen_method(qualified, method))

        if cls.iterable is not None:
            lines.append('')
            lines.append(f'---@return fun(): {self.luacats_type(cls.iterable)}')
            lines.append(f'function {qualified}:iter() end')
        return lines

    def _gen_method(self, qualified: str, method: 'Method') -> list[str]:
        """Generate method definition; async methods show their unwrapped result"""
        lines = []
        sig = method.sig.async_transform()
        if sig is not None:
            lines.append('---@async')
        else:
            sig = method.sig

        params = sig.args_skipping_ignored()
        for param in params:
            lines.append(f'---@param {lua_name(param.name)} {self.luacats_type(param.type)}')

        ret = sig.ret.args[0] if sig.ret.is_template('AsyncResult') else sig.ret
        if not ret.is_void():
            lines.append(f'---@return {self.luacats_type(ret)}')

        separator = '.' if method.is_static else ':'
        param_names = ', '.join(lua_name(p.name) for p in params)
        lines.append(f'function {qualified}{separator}{display_name(method)}({param_names}) end')
        return lines
