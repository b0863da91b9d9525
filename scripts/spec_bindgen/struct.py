"""
Struct binding generation module

Records travel as plain Lua tables: push_struct_<Name> builds a table field by
field and to_struct_<Name> reads one back, raising a Lua error when a required
field is missing.
"""

from typing import TYPE_CHECKING

from .codegen import CodeGen, display_name

if TYPE_CHECKING:
    from .callback import CallbackGenerator
    from .model import Field, Struct
    from .types import TypeConverter


class StructGenerator:
    """Generates struct bindings"""

    def __init__(self, type_conv: 'TypeConverter', callback_gen: 'CallbackGenerator'):
        self.type_conv = type_conv
        self.callback_gen = callback_gen

    def declare(self, struct: 'Struct', gen: CodeGen):
        """Forward declarations; records may reference each other in any order"""
        gen.line(f'static void push_struct_{struct.name}(lua_State* L, const {struct.native_name}& value);')
        gen.line(f'static {struct.native_name} to_struct_{struct.name}(lua_State* L, int idx);')

    def generate(self, struct: 'Struct', gen: CodeGen):
        """Generate all bindings for a struct"""
        callback_fields = [f for f in struct.fields if f.type.is_function()]

        # Generate callback adapters
        for field in callback_fields:
            self.callback_gen.generate_field_adapter(struct, field, gen)

        self._gen_push(struct, gen)
        self._gen_read(struct, gen)

    def _gen_push(self, struct: 'Struct', gen: CodeGen):
        """Generate native record -> Lua table"""
        # Callables are write-only from Lua
        fields = [f for f in struct.fields if not f.type.is_function()]

        with gen.block(f'static void push_struct_{struct.name}(lua_State* L, const {struct.native_name}& value) {{'):
            gen.line(f'lua_createtable(L, 0, {len(fields)});')
            for field in fields:
                push_code = self.type_conv.to_host(field.type, f'value.{field.native_name}')
                gen.lines(*f'{push_code};'.split('\n'))
                gen.line(f'lua_setfield(L, -2, "{display_name(field)}");')
        gen.line()

    def _gen_read(self, struct: 'Struct', gen: CodeGen):
        """Generate Lua table -> native record"""
        with gen.block(f'static {struct.native_name} to_struct_{struct.name}(lua_State* L, int idx) {{'):
            gen.line('idx = lua_absindex(L, idx);')
            gen.line('luaL_checktype(L, idx, LUA_TTABLE);')
            gen.line(f'{struct.native_name} out;')
            for field in struct.fields:
                self._gen_field_read(struct, field, gen)
            gen.line('return out;')
        gen.line()

    def _gen_field_read(self, struct: 'Struct', field: 'Field', gen: CodeGen):
        name = display_name(field)
        gen.line(f'lua_getfield(L, idx, "{name}");')
        gen.line('if (!lua_isnil(L, -1)) {')
        gen.indent()
        if field.type.is_function():
            value = f'{self.callback_gen.adapter_name(struct, field)}(L, -1)'
        else:
            value = self.type_conv.from_host(field.type, '-1')
        gen.lines(*f'out.{field.native_name} = {value};'.split('\n'))
        gen.dedent()
        if field.required:
            gen.line('} else {')
            gen.indent()
            gen.line(f'luaL_error(L, "{struct.name}.{name} is required");')
            gen.dedent()
        gen.line('}')
        gen.line('lua_pop(L, 1);')
