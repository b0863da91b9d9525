"""
Lua conversion rules

Emission vocabulary for the Lua 5.4 C API. Conventions for the generated C++:

- `lua_State* L` is in scope.
- to_host(type, expr) yields an expression pushing exactly one Lua value.
- from_host(type, idx) yields an expression reading the value at stack index idx.

Helpers in the `bindgen_lua` namespace come from the runtime header that
accompanies the generated module.
"""

from .codegen import to_cpp
from .errors import ConversionError
from .types import ConversionContext, ConversionRules, TypeHandler

RUNTIME_HEADER = 'bindgen_lua.hpp'


# ==============================================================================
# Primitive Handlers
# ==============================================================================

class VoidHandler(TypeHandler):
    def to_host(self, ctx: ConversionContext) -> str:
        return f'((void)({ctx.expr}), lua_pushnil(L))'

    def from_host(self, ctx: ConversionContext) -> str:
        return f'((void)({ctx.expr}))'


class BoolHandler(TypeHandler):
    def to_host(self, ctx: ConversionContext) -> str:
        return f'lua_pushboolean(L, {ctx.expr})'

    def from_host(self, ctx: ConversionContext) -> str:
        return f'bool(lua_toboolean(L, {ctx.expr}))'


class IntegerHandler(TypeHandler):
    def to_host(self, ctx: ConversionContext) -> str:
        return f'lua_pushinteger(L, lua_Integer({ctx.expr}))'

    def from_host(self, ctx: ConversionContext) -> str:
        return f'{to_cpp(ctx.type)}(luaL_checkinteger(L, {ctx.expr}))'


class NumberHandler(TypeHandler):
    def to_host(self, ctx: ConversionContext) -> str:
        return f'lua_pushnumber(L, lua_Number({ctx.expr}))'

    def from_host(self, ctx: ConversionContext) -> str:
        return f'{to_cpp(ctx.type)}(luaL_checknumber(L, {ctx.expr}))'


class StringHandler(TypeHandler):
    """Strings and string views; owned strings copy out of Lua"""

    def __init__(self, owned: bool):
        self.owned = owned

    def to_host(self, ctx: ConversionContext) -> str:
        return f'[&] (auto&& s) {{ lua_pushlstring(L, s.data(), s.size()); }}({ctx.expr})'

    def from_host(self, ctx: ConversionContext) -> str:
        view = f'bindgen_lua::check_string_view(L, {ctx.expr})'
        if self.owned:
            return f'std::string({view})'
        return f'{to_cpp(ctx.type)}({view})'


class BinaryHandler(TypeHandler):
    """BinaryData is a view; OwnedBinaryData owns a copy"""

    def __init__(self, owned: bool):
        self.owned = owned

    def to_host(self, ctx: ConversionContext) -> str:
        expr = f'({ctx.expr}).get()' if self.owned else ctx.expr
        return f'[&] (BinaryData bd) {{ lua_pushlstring(L, bd.data(), bd.size()); }}({expr})'

    def from_host(self, ctx: ConversionContext) -> str:
        view = f'bindgen_lua::check_string_view(L, {ctx.expr})'
        if self.owned:
            return f'OwnedBinaryData({view}.data(), {view}.size())'
        return f'BinaryData({view}.data(), {view}.size())'


class ErrorHandler(TypeHandler):
    """Error carriers only ever travel from native code to Lua"""

    def to_host(self, ctx: ConversionContext) -> str:
        return f'bindgen_lua::push_error(L, {ctx.expr})'

    def from_host(self, ctx: ConversionContext) -> str:
        raise ConversionError(f'{ctx.type} cannot be converted from Lua')


class MixedHandler(TypeHandler):
    """Tag switch over the alternatives listed in the bound mixed info"""

    def to_host(self, ctx: ConversionContext) -> str:
        if ctx.spec is None:
            raise ConversionError('Mixed conversion needs the bound spec')
        cases = ''.join(
            f'case DataType::Type::{g.data_type}: '
            f'{ctx.to_host(g.type, f"m.{g.getter}()")}; return;\n'
            for g in ctx.spec.mixed_info.getters
        )
        return (f'[&] (const Mixed& m) {{\n'
                f'if (m.is_null()) {{ lua_pushnil(L); return; }}\n'
                f'switch (m.get_type()) {{\n{cases}default: break;\n}}\n'
                f'luaL_error(L, "unsupported Mixed type %d", int(m.get_type()));\n'
                f'}}({ctx.expr})')

    def from_host(self, ctx: ConversionContext) -> str:
        if ctx.spec is None:
            raise ConversionError('Mixed conversion needs the bound spec')
        userdata = ''
        for ctor in ctx.spec.mixed_info.ctors:
            target = ctor.remove_const_ref()
            if target.is_template('std::shared_ptr'):
                target = target.args[0]
            if target.kind == 'Class':
                metatable = ctx.conv.rules.metatable(target.name)
                userdata += (f'if (bindgen_lua::is_instance(L, idx, "{metatable}")) '
                             f'return Mixed({ctx.from_host(ctor, "idx")});\n')
        return (f'[&] (int idx) -> Mixed {{\n'
                f'switch (lua_type(L, idx)) {{\n'
                f'case LUA_TNIL: return Mixed();\n'
                f'case LUA_TBOOLEAN: return Mixed(bool(lua_toboolean(L, idx)));\n'
                f'case LUA_TNUMBER: return lua_isinteger(L, idx) '
                f'? Mixed(int64_t(lua_tointeger(L, idx))) : Mixed(double(lua_tonumber(L, idx)));\n'
                f'case LUA_TSTRING: return Mixed(StringData(bindgen_lua::check_string_view(L, idx)));\n'
                f'default: break;\n}}\n'
                f'{userdata}'
                f'luaL_error(L, "value cannot be stored in a Mixed");\n'
                f'return Mixed();\n'
                f'}}({ctx.expr})')


# ==============================================================================
# Template Handlers
# ==============================================================================

class SharedPtrHandler(TypeHandler):
    def to_host(self, ctx: ConversionContext) -> str:
        inner = ctx.type.args[0]
        if inner.kind == 'Class' and inner.shared_ptr_wrapped:
            return (f'bindgen_lua::push_shared<{inner.native_name}>(L, {ctx.expr}, '
                    f'"{ctx.conv.rules.metatable(inner.name)}")')
        return ctx.to_host(inner, f'*({ctx.expr})')

    def from_host(self, ctx: ConversionContext) -> str:
        inner = ctx.type.args[0]
        if inner.kind == 'Class' and inner.shared_ptr_wrapped:
            return (f'bindgen_lua::check_shared<{inner.native_name}>(L, {ctx.expr}, '
                    f'"{ctx.conv.rules.metatable(inner.name)}")')
        return f'std::make_shared<{to_cpp(inner)}>({ctx.from_host(inner, ctx.expr)})'


class OptionalHandler(TypeHandler):
    def to_host(self, ctx: ConversionContext) -> str:
        inner = ctx.type.args[0]
        return (f'[&] (auto&& opt) {{ if (!opt) lua_pushnil(L); '
                f'else {ctx.to_host(inner, "*opt")}; }}({ctx.expr})')

    def from_host(self, ctx: ConversionContext) -> str:
        opt = to_cpp(ctx.type)
        return (f'[&] (int idx) {{ return lua_isnoneornil(L, idx) ? {opt}() '
                f': {opt}({ctx.from_host(ctx.type.args[0], "idx")}); }}({ctx.expr})')


class NullableHandler(TypeHandler):
    """Nullable<T> marks a T (usually a pointer or handle) that may be null"""

    def to_host(self, ctx: ConversionContext) -> str:
        inner = ctx.type.args[0]
        return (f'[&] (auto&& v) {{ if (!v) lua_pushnil(L); '
                f'else {ctx.to_host(inner, "v")}; }}({ctx.expr})')

    def from_host(self, ctx: ConversionContext) -> str:
        inner = ctx.type.args[0]
        cpp = to_cpp(inner)
        return (f'[&] (int idx) -> {cpp} {{ return lua_isnoneornil(L, idx) ? {cpp}{{}} '
                f': {cpp}({ctx.from_host(inner, "idx")}); }}({ctx.expr})')


class VectorHandler(TypeHandler):
    def to_host(self, ctx: ConversionContext) -> str:
        inner = ctx.type.args[0]
        return (f'[&] (auto&& vec) {{\n'
                f'lua_createtable(L, int(vec.size()), 0);\n'
                f'lua_Integer i = 1;\n'
                f'for (auto&& e : vec) {{\n'
                f'{ctx.to_host(inner, "e")};\n'
                f'lua_rawseti(L, -2, i++);\n'
                f'}}\n'
                f'}}({ctx.expr})')

    def from_host(self, ctx: ConversionContext) -> str:
        inner = ctx.type.args[0]
        return (f'[&] (int idx) {{\n'
                f'idx = lua_absindex(L, idx);\n'
                f'luaL_checktype(L, idx, LUA_TTABLE);\n'
                f'auto out = std::vector<{to_cpp(inner)}>();\n'
                f'const lua_Integer len = luaL_len(L, idx);\n'
                f'out.reserve(size_t(len));\n'
                f'for (lua_Integer i = 1; i <= len; i++) {{\n'
                f'lua_rawgeti(L, idx, i);\n'
                f'out.push_back({ctx.from_host(inner, "-1")});\n'
                f'lua_pop(L, 1);\n'
                f'}}\n'
                f'return out;\n'
                f'}}({ctx.expr})')


class TupleHandler(TypeHandler):
    """std::pair and std::tuple map to Lua sequences"""

    def __init__(self, make: str):
        self.make = make  # 'std::make_pair' or 'std::make_tuple'

    def to_host(self, ctx: ConversionContext) -> str:
        items = ''.join(
            f'{ctx.to_host(arg, f"std::get<{i}>(tup)")};\nlua_rawseti(L, -2, {i + 1});\n'
            for i, arg in enumerate(ctx.type.args)
        )
        return (f'[&] (auto&& tup) {{\n'
                f'lua_createtable(L, {len(ctx.type.args)}, 0);\n'
                f'{items}'
                f'}}({ctx.expr})')

    def from_host(self, ctx: ConversionContext) -> str:
        reads = ''.join(
            f'lua_rawgeti(L, idx, {i + 1});\n'
            f'auto e{i} = {ctx.from_host(arg, "-1")};\n'
            f'lua_pop(L, 1);\n'
            for i, arg in enumerate(ctx.type.args)
        )
        names = ', '.join(f'std::move(e{i})' for i in range(len(ctx.type.args)))
        return (f'[&] (int idx) {{\n'
                f'idx = lua_absindex(L, idx);\n'
                f'luaL_checktype(L, idx, LUA_TTABLE);\n'
                f'{reads}'
                f'return {self.make}({names});\n'
                f'}}({ctx.expr})')


class MapHandler(TypeHandler):
    def to_host(self, ctx: ConversionContext) -> str:
        key, value = ctx.type.args
        return (f'[&] (auto&& map) {{\n'
                f'lua_createtable(L, 0, int(map.size()));\n'
                f'for (auto&& [k, v] : map) {{\n'
                f'{ctx.to_host(key, "k")};\n'
                f'{ctx.to_host(value, "v")};\n'
                f'lua_rawset(L, -3);\n'
                f'}}\n'
                f'}}({ctx.expr})')

    def from_host(self, ctx: ConversionContext) -> str:
        key, value = ctx.type.args
        return (f'[&] (int idx) {{\n'
                f'idx = lua_absindex(L, idx);\n'
                f'luaL_checktype(L, idx, LUA_TTABLE);\n'
                f'{to_cpp(ctx.type)} out;\n'
                f'lua_pushnil(L);\n'
                f'while (lua_next(L, idx)) {{\n'
                f'out.emplace({ctx.from_host(key, "-2")}, {ctx.from_host(value, "-1")});\n'
                f'lua_pop(L, 1);\n'
                f'}}\n'
                f'return out;\n'
                f'}}({ctx.expr})')


class FunctionWrapperHandler(TypeHandler):
    """util::UniqueFunction, std::function and AsyncCallback around a Func"""

    def to_host(self, ctx: ConversionContext) -> str:
        return ctx.to_host(ctx.type.args[0], ctx.expr)

    def from_host(self, ctx: ConversionContext) -> str:
        return f'{to_cpp(ctx.type)}({ctx.from_host(ctx.type.args[0], ctx.expr)})'


class IgnoreArgumentHandler(TypeHandler):
    """Arguments the host never supplies; native code gets a default value"""

    def to_host(self, ctx: ConversionContext) -> str:
        return ctx.to_host(ctx.type.args[0], ctx.expr)

    def from_host(self, ctx: ConversionContext) -> str:
        return f'{to_cpp(ctx.type.args[0])}{{}}'


# ==============================================================================
# Rules
# ==============================================================================

class LuaRules(ConversionRules):
    """Conversion rules for a Lua module named `module`"""

    def __init__(self, module: str = 'bindings'):
        super().__init__()
        self.module = module

        self.primitives['void'] = VoidHandler()
        self.primitives['bool'] = BoolHandler()
        for name in ('int', 'int32_t', 'uint32_t', 'int64_t', 'uint64_t', 'count_t'):
            self.primitives[name] = IntegerHandler()
        for name in ('double', 'float'):
            self.primitives[name] = NumberHandler()
        for name in ('std::string', 'EJson', 'EJsonObj', 'EJsonArray'):
            self.primitives[name] = StringHandler(owned=True)
        for name in ('std::string_view', 'StringData'):
            self.primitives[name] = StringHandler(owned=False)
        self.primitives['BinaryData'] = BinaryHandler(owned=False)
        self.primitives['OwnedBinaryData'] = BinaryHandler(owned=True)
        self.primitives['Mixed'] = MixedHandler()
        for name in ('AppError', 'Status', 'std::error_code', 'std::exception_ptr'):
            self.primitives[name] = ErrorHandler()

        self.templates['std::shared_ptr'] = SharedPtrHandler()
        self.templates['util::Optional'] = OptionalHandler()
        self.templates['Nullable'] = NullableHandler()
        self.templates['std::vector'] = VectorHandler()
        self.templates['std::pair'] = TupleHandler('std::make_pair')
        self.templates['std::tuple'] = TupleHandler('std::make_tuple')
        self.templates['std::map'] = MapHandler()
        self.templates['std::unordered_map'] = MapHandler()
        for name in ('util::UniqueFunction', 'std::function', 'AsyncCallback'):
            self.templates[name] = FunctionWrapperHandler()
        self.templates['IgnoreArgument'] = IgnoreArgumentHandler()

    def metatable(self, name: str) -> str:
        return f'{self.module}.{name}'

    def pointer_to_host(self, ctx: ConversionContext) -> str:
        # Unmarked pointers are never null; nullable ones are wrapped in Nullable<>
        return ctx.to_host(ctx.type.type, f'*({ctx.expr})')

    def pointer_from_host(self, ctx: ConversionContext) -> str:
        return f'&({ctx.from_host(ctx.type.type, ctx.expr)})'

    def class_to_host(self, ctx: ConversionContext) -> str:
        cls = ctx.type
        if cls.shared_ptr_wrapped:
            raise ConversionError(f'should not directly convert from {cls.name} without shared_ptr wrapper')
        return f'bindgen_lua::push_class<{cls.native_name}>(L, {ctx.expr}, "{self.metatable(cls.name)}")'

    def class_from_host(self, ctx: ConversionContext) -> str:
        cls = ctx.type
        if cls.shared_ptr_wrapped:
            return f'*bindgen_lua::check_shared<{cls.native_name}>(L, {ctx.expr}, "{self.metatable(cls.name)}")'
        value = f'bindgen_lua::check_class<{cls.native_name}>(L, {ctx.expr}, "{self.metatable(cls.name)}")'
        # Handle-like natives store a pointer-ish value in the userdata
        return f'(*{value})' if cls.needs_deref else value

    def stored_type(self, cls) -> str:
        """C++ type held in the userdata of a class instance"""
        if cls.shared_ptr_wrapped:
            return f'std::shared_ptr<{cls.native_name}>'
        return cls.native_name

    def rref_from_host(self, ctx: ConversionContext) -> str:
        inner = ctx.type.type.remove_const_ref()
        value = ctx.from_host(ctx.type.type, ctx.expr)
        if inner.kind == 'Class' and not inner.shared_ptr_wrapped:
            return f'std::move({value})'
        return value

    def struct_to_host(self, ctx: ConversionContext) -> str:
        return f'push_struct_{ctx.type.name}(L, {ctx.expr})'

    def struct_from_host(self, ctx: ConversionContext) -> str:
        return f'to_struct_{ctx.type.name}(L, {ctx.expr})'

    def enum_to_host(self, ctx: ConversionContext) -> str:
        return f'lua_pushinteger(L, lua_Integer({ctx.expr}))'

    def enum_from_host(self, ctx: ConversionContext) -> str:
        return f'{ctx.type.native_name}(luaL_checkinteger(L, {ctx.expr}))'

    def opaque_to_host(self, ctx: ConversionContext) -> str:
        return f'lua_pushlightuserdata(L, const_cast<void*>(static_cast<const void*>(&({ctx.expr}))))'

    def opaque_from_host(self, ctx: ConversionContext) -> str:
        return f'*static_cast<{ctx.type.name}*>(lua_touserdata(L, {ctx.expr}))'

    def key_type_to_host(self, ctx: ConversionContext) -> str:
        return ctx.to_host(ctx.type.type, f'({ctx.expr}).value')

    def key_type_from_host(self, ctx: ConversionContext) -> str:
        return f'{ctx.type.name}({ctx.from_host(ctx.type.type, ctx.expr)})'

    def func_to_host(self, ctx: ConversionContext) -> str:
        func = ctx.type
        args = ', '.join(ctx.from_host(a.type, str(i + 1)) for i, a in enumerate(func.args))
        if func.ret.is_void():
            body = f'cb({args});\nreturn 0;'
        else:
            body = f'{ctx.to_host(func.ret, f"cb({args})")};\nreturn 1;'
        return (f'[&] (auto&& cb) {{\n'
                f'bindgen_lua::push_function(L, [cb = std::move(cb)] (lua_State* L) -> int {{\n'
                f'{body}\n'
                f'}});\n'
                f'}}({ctx.expr})')

    def func_from_host(self, ctx: ConversionContext) -> str:
        func = ctx.type
        params = ', '.join(f'{to_cpp(a.type)} {a.name}' for a in func.args)
        pushes = ''.join(f'{ctx.to_host(a.type, a.name)};\n' for a in func.args)
        nresults = 0 if func.ret.is_void() else 1
        call = f'bindgen_lua::call(L, {len(func.args)}, {nresults});\n'
        if func.ret.is_void():
            ret = ''
        else:
            ret = (f'auto _ret = {ctx.from_host(func.ret, "-1")};\n'
                   f'lua_pop(L, 1);\n'
                   f'return _ret;\n')
        return (f'[_ref = std::make_shared<bindgen_lua::LuaRef>(L, {ctx.expr})] '
                f'({params}) -> {to_cpp(func.ret)} {{\n'
                f'lua_State* L = _ref->state();\n'
                f'_ref->push();\n'
                f'{pushes}{call}{ret}'
                f'}}')

