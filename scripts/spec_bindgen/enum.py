"""
Enum binding generation module

Generates enum constants registration.
"""

from typing import TYPE_CHECKING

from .codegen import CodeGen, display_name

if TYPE_CHECKING:
    from .model import Enum


class EnumGenerator:
    """Generates enum constant bindings"""

    def generate(self, enum: 'Enum', gen: CodeGen):
        """Generate enum constants registration

        The table is stored in the module table, which is on top of the stack.
        """
        gen.line(f'static void register_enum_{enum.name}(lua_State* L) {{')
        gen.indent()
        gen.line(f'lua_createtable(L, 0, {len(enum.enumerators)});')

        for item in enum.enumerators:
            gen.line(f'lua_pushinteger(L, {item.value});')
            gen.line(f'lua_setfield(L, -2, "{item.name}");')

        gen.line(f'lua_setfield(L, -2, "{display_name(enum)}");')
        gen.dedent()
        gen.line('}')
        gen.line()

    def generate_checks(self, enum: 'Enum', gen: CodeGen):
        """Assert the declared values match the native enum at compile time"""
        for item in enum.enumerators:
            gen.line(f'static_assert(int64_t({enum.native_name}::{item.name}) == {item.value}, '
                     f'"{enum.name}.{item.name} has an unexpected value");')
        if enum.enumerators:
            gen.line()
