"""
Function binding generation module

Generates wrapper functions for class methods, constructors, properties and
iteration. Async methods yield the calling coroutine until the native
completion callback resumes it.
"""

from typing import TYPE_CHECKING

from .codegen import CodeGen, display_name

if TYPE_CHECKING:
    from .callback import CallbackGenerator
    from .model import Class, Method
    from .types import TypeConverter


class FuncGenerator:
    """Generates method wrapper bindings"""

    def __init__(self, type_conv: 'TypeConverter', callback_gen: 'CallbackGenerator'):
        self.type_conv = type_conv
        self.callback_gen = callback_gen

    def wrapper_name(self, method: 'Method') -> str:
        return f'l_{method.id}'

    def generate(self, method: 'Method', gen: CodeGen):
        """Generate wrapper for a method"""
        transformed = method.sig.async_transform()

        gen.line(f'static int {self.wrapper_name(method)}(lua_State* L) {{')
        gen.indent()

        if transformed is not None:
            gen.line('if (!lua_isyieldable(L)) {')
            gen.indent()
            gen.line(f'return luaL_error(L, "{method.on.name}.{display_name(method)} must be called from a coroutine");')
            gen.dedent()
            gen.line('}')

        # Get parameters from Lua stack; instance methods take self at index 1
        idx = 1
        if not method.is_static:
            self._emit(gen, f'auto&& _self = {self.type_conv.from_host(method.on, "1")};')
            idx = 2

        args = []
        visible = (transformed or method.sig).args
        for arg in visible:
            if arg.type.is_template('IgnoreArgument'):
                value = self.type_conv.from_host(arg.type, '0')
            else:
                value = self.type_conv.from_host(arg.type, str(idx))
                idx += 1
            self._emit(gen, f'auto&& {arg.name} = {value};')
            args.append(f'std::move({arg.name})' if arg.type.kind == 'RRef' else arg.name)

        if transformed is not None:
            args.append(self.callback_gen.completion_handler(method))
            self._emit(gen, f'{method.call("_self", *args)};')
            gen.line('return lua_yield(L, 0);')
        elif method.sig.ret.is_void():
            self._emit(gen, f'{method.call("_self", *args)};')
            gen.line('return 0;')
        else:
            self._emit(gen, f'{self.type_conv.to_host(method.sig.ret, method.call("_self", *args))};')
            gen.line('return 1;')

        gen.dedent()
        gen.line('}')
        gen.line()

    def generate_iter(self, cls: 'Class', gen: CodeGen):
        """Generate `iter`, returning a Lua iterator over a snapshot of the elements"""
        gen.line(f'static int l_{cls.name}__iter(lua_State* L) {{')
        gen.indent()
        self._emit(gen, f'auto&& _self = {self.type_conv.from_host(cls, "1")};')
        gen.line('lua_newtable(L);')
        gen.line('lua_Integer _i = 1;')
        with gen.block('for (auto&& _elem : _self) {'):
            self._emit(gen, f'{self.type_conv.to_host(cls.iterable, "_elem")};')
            gen.line('lua_rawseti(L, -2, _i++);')
        gen.line('lua_pushinteger(L, 0);')
        gen.line('lua_pushcclosure(L, bindgen_lua::next_in_sequence, 2);')
        gen.line('return 1;')
        gen.dedent()
        gen.line('}')
        gen.line()

    def generate_index(self, cls: 'Class', gen: CodeGen):
        """Generate __index: properties of the class and its bases, then the method table"""
        gen.line(f'static int l_{cls.name}__index(lua_State* L) {{')
        gen.indent()
        gen.line('const char* key = luaL_checkstring(L, 2);')

        owner = cls
        while owner is not None:
            for method in owner.methods:
                if method.is_property:
                    gen.line(f'if (strcmp(key, "{display_name(method)}") == 0) '
                             f'return {self.wrapper_name(method)}(L);')
            owner = owner.base

        gen.line('luaL_getmetafield(L, 1, "__methods");')
        gen.line('lua_getfield(L, -1, key);')
        gen.line('return 1;')
        gen.dedent()
        gen.line('}')
        gen.line()

    def _emit(self, gen: CodeGen, code: str):
        gen.lines(*code.split('\n'))
