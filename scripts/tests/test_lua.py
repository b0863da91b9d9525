"""
Tests for spec_bindgen/lua_rules.py and the generated Lua C API module

Validates:
- conversion expressions for primitives, entities and templates
- shared_ptr wrapped classes only travel inside their handle
- the generated module registers wrappers, metatables and enums
"""

import pytest

from spec_bindgen.errors import ConversionError
from spec_bindgen.generator import Generator, GeneratorConfig
from spec_bindgen.lua_rules import LuaRules
from spec_bindgen.model import Arg, Class, Func, Primitive, RRef, Struct, Template
from spec_bindgen.types import TypeConverter

VOID = Primitive('void')
INT = Primitive('int')


@pytest.fixture
def conv(bound_spec):
    return TypeConverter(LuaRules(), bound_spec)


@pytest.fixture
def lua_module(bound_spec):
    return Generator(GeneratorConfig([])).render(bound_spec)['bindings.cpp']


def function_body(text, header, footer='\n}\n'):
    """Text of a top-level C++ definition, from its header to the closing brace"""
    start = text.index(header)
    return text[start:text.index(footer, start)]


# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------


def test_integers(conv):
    assert conv.to_host(Primitive('int64_t'), 'x') == 'lua_pushinteger(L, lua_Integer(x))'
    assert conv.from_host(INT, '2') == 'int(luaL_checkinteger(L, 2))'


def test_count_t_uses_native_spelling(conv):
    assert conv.from_host(Primitive('count_t'), '1') == 'size_t(luaL_checkinteger(L, 1))'


def test_strings(conv):
    assert conv.from_host(Primitive('std::string'), '1') == 'std::string(bindgen_lua::check_string_view(L, 1))'
    assert conv.from_host(Primitive('StringData'), '1') == 'StringData(bindgen_lua::check_string_view(L, 1))'
    assert 'lua_pushlstring' in conv.to_host(Primitive('std::string'), 's')


def test_bool(conv):
    assert conv.to_host(Primitive('bool'), 'b') == 'lua_pushboolean(L, b)'
    assert conv.from_host(Primitive('bool'), '3') == 'bool(lua_toboolean(L, 3))'


def test_errors_only_go_to_lua(conv):
    assert conv.to_host(Primitive('AppError'), 'e') == 'bindgen_lua::push_error(L, e)'
    with pytest.raises(ConversionError):
        conv.from_host(Primitive('AppError'), '1')


def test_mixed_needs_bound_spec():
    with pytest.raises(ConversionError):
        TypeConverter(LuaRules()).to_host(Primitive('Mixed'), 'm')


def test_mixed_switches_over_getters(conv):
    code = conv.to_host(Primitive('Mixed'), 'm')
    assert 'case DataType::Type::Int: lua_pushinteger(L, lua_Integer(m.get_int())); return;' in code
    assert 'm.get_string()' in code


def test_mixed_from_lua_accepts_extra_ctors(conv):
    code = conv.from_host(Primitive('Mixed'), '2')
    assert 'bindgen_lua::is_instance(L, idx, "bindings.Dog")' in code
    assert code.endswith('}(2)')


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


def test_class(conv, bound_spec):
    dog = bound_spec.types['Dog']
    assert conv.to_host(dog, 'd') == 'bindgen_lua::push_class<zoo::Dog>(L, d, "bindings.Dog")'
    assert conv.from_host(dog, '1') == 'bindgen_lua::check_class<zoo::Dog>(L, 1, "bindings.Dog")'


def test_moved_class(conv, bound_spec):
    dog = bound_spec.types['Dog']
    assert conv.from_host(RRef(dog), '2') == 'std::move(bindgen_lua::check_class<zoo::Dog>(L, 2, "bindings.Dog"))'


def test_needs_deref():
    handle = Class('Handle')
    handle.needs_deref = True
    code = TypeConverter(LuaRules()).from_host(handle, '1')
    assert code == '(*bindgen_lua::check_class<Handle>(L, 1, "bindings.Handle"))'


def test_shared_class_needs_handle(conv, bound_spec):
    kennel = bound_spec.types['Kennel']
    with pytest.raises(ConversionError) as exc:
        conv.to_host(kennel, 'k')
    assert 'shared_ptr wrapper' in str(exc.value)
    assert conv.from_host(kennel, '1') == '*bindgen_lua::check_shared<Kennel>(L, 1, "bindings.Kennel")'


def test_shared_handle(conv, bound_spec):
    handle = bound_spec.types['SharedKennel']
    assert conv.to_host(handle, 'k') == 'bindgen_lua::push_shared<Kennel>(L, k, "bindings.Kennel")'
    assert conv.from_host(handle, '1') == 'bindgen_lua::check_shared<Kennel>(L, 1, "bindings.Kennel")'


def test_module_name_prefixes_metatables(bound_spec):
    conv = TypeConverter(LuaRules('zoo'), bound_spec)
    assert '"zoo.Dog"' in conv.to_host(bound_spec.types['Dog'], 'd')


def test_enum(conv, bound_spec):
    assert conv.from_host(bound_spec.types['Size'], '3') == 'zoo::Size(luaL_checkinteger(L, 3))'
    assert conv.to_host(bound_spec.types['Color'], 'c') == 'lua_pushinteger(L, lua_Integer(c))'


def test_key_type(conv, bound_spec):
    key = bound_spec.types['TagKey']
    assert conv.to_host(key, 'k') == 'lua_pushinteger(L, lua_Integer((k).value))'
    assert conv.from_host(key, '1') == 'TagKey(int64_t(luaL_checkinteger(L, 1)))'


def test_opaque(conv, bound_spec):
    assert conv.from_host(bound_spec.types['Collar'], '1') == '*static_cast<Collar*>(lua_touserdata(L, 1))'


def test_struct(conv):
    point = Struct('Point')
    assert conv.to_host(point, 'p') == 'push_struct_Point(L, p)'
    assert conv.from_host(point, '-1') == 'to_struct_Point(L, -1)'


# ---------------------------------------------------------------------------
# Templates and callables
# ---------------------------------------------------------------------------


def test_optional(conv):
    code = conv.from_host(Template('util::Optional', [INT]), '2')
    assert 'lua_isnoneornil(L, idx)' in code
    assert 'util::Optional<int>(int(luaL_checkinteger(L, idx)))' in code


def test_vector(conv):
    code = conv.from_host(Template('std::vector', [INT]), '1')
    assert 'auto out = std::vector<int>();' in code
    assert 'out.push_back(int(luaL_checkinteger(L, -1)));' in code


def test_ignored_argument_gets_default(conv):
    assert conv.from_host(Template('IgnoreArgument', [INT]), '0') == 'int{}'


def test_unknown_template(conv):
    with pytest.raises(ConversionError):
        conv.to_host(Template('std::deque', [INT]), 'v')


def test_lua_function_to_native(conv):
    code = conv.from_host(Func(VOID, [Arg('times', INT)]), '3')
    assert code.startswith('[_ref = std::make_shared<bindgen_lua::LuaRef>(L, 3)] (int times) -> void {')
    assert 'lua_pushinteger(L, lua_Integer(times));' in code
    assert 'bindgen_lua::call(L, 1, 0);' in code


def test_lua_function_with_result(conv):
    code = conv.from_host(Func(INT, []), '1')
    assert 'bindgen_lua::call(L, 0, 1);' in code
    assert 'auto _ret = int(luaL_checkinteger(L, -1));' in code


def test_native_function_to_lua(conv):
    code = conv.to_host(Func(INT, [Arg('n', INT)]), 'fn')
    assert 'bindgen_lua::push_function(L' in code
    assert 'lua_pushinteger(L, lua_Integer(cb(int(luaL_checkinteger(L, 1)))));' in code


def test_function_wrapper(conv):
    code = conv.from_host(Template('util::UniqueFunction', [Func(VOID, [])]), '1')
    assert code.startswith('util::UniqueFunction<void()>(')


# ---------------------------------------------------------------------------
# Generated module
# ---------------------------------------------------------------------------


def test_preamble(lua_module):
    assert lua_module.startswith('// machine generated, do not edit\n')
    assert '#include "zoo/animals.hpp"' in lua_module
    assert '#include "bindgen_lua.hpp"' in lua_module
    assert lua_module.endswith('}\n')


def test_luaopen(lua_module):
    body = function_body(lua_module, 'BINDGEN_API int luaopen_bindings(lua_State* L) {')
    assert 'register_metatables(L);' in body
    assert 'luaL_newlib(L, Dog_statics);' in body
    assert 'lua_setfield(L, -2, "Kennel");' in body
    assert 'register_enum_Size(L);' in body


def test_luaopen_name_from_dotted_module(bound_spec):
    text = Generator(GeneratorConfig([], module_name='zoo.core')).render(bound_spec)['zoo.core.cpp']
    assert 'luaopen_zoo_core(lua_State* L)' in text
    assert '"zoo.core.Dog"' in text


def test_required_fields_checked(lua_module):
    assert 'luaL_error(L, "Point.x is required");' in lua_module
    assert 'Point.y is required' not in lua_module
    assert 'DogInfo.nickname is required' not in lua_module


def test_callback_field(lua_module):
    assert ('static util::UniqueFunction<void(int)> callback_from_lua_DogInfo_onBark(lua_State* L, int idx) {'
            in lua_module)
    push = function_body(lua_module, 'static void push_struct_DogInfo(lua_State* L, const zoo::DogInfo& value) {')
    assert '"on_bark"' not in push
    read = function_body(lua_module, 'static zoo::DogInfo to_struct_DogInfo(lua_State* L, int idx) {')
    assert 'out.onBark = callback_from_lua_DogInfo_onBark(L, -1);' in read


def test_async_method_yields(lua_module):
    body = function_body(lua_module, 'static int l_Dog_fetch(lua_State* L) {')
    assert 'Dog.fetch must be called from a coroutine' in body
    assert 'auto&& distance = double(luaL_checknumber(L, 2));' in body
    assert '_thread->resume(1);' in body
    assert body.rstrip().endswith('return lua_yield(L, 0);')


def test_async_void_method(lua_module):
    body = function_body(lua_module, 'static int l_Kennel_sync(lua_State* L) {')
    assert '_thread->resume(0);' in body
    assert 'bindgen_lua::push_error(L, *opt)' in body


def test_ignored_argument_takes_no_stack_slot(lua_module):
    body = function_body(lua_module, 'static int l_Puppy_play(lua_State* L) {')
    assert 'auto&& toy = std::string(bindgen_lua::check_string_view(L, 2));' in body
    assert 'auto&& unused = int{};' in body
    assert 'lua_pushboolean(L, _self.play(toy, unused));' in body


def test_rvalue_argument_is_moved(lua_module):
    body = function_body(lua_module, 'static int l_Kennel_adopt(lua_State* L) {')
    assert 'auto&& _self = *bindgen_lua::check_shared<Kennel>(L, 1, "bindings.Kennel");' in body
    assert '_self.adopt(std::move(dog));' in body
    assert 'return 0;' in body


def test_constructor_and_static(lua_module):
    make = function_body(lua_module, 'static int l_Dog_make(lua_State* L) {')
    assert '_self' not in make
    assert 'zoo::Dog(name)' in make
    open_ = function_body(lua_module, 'static int l_Kennel_open(lua_State* L) {')
    assert 'std::make_shared<Kennel>(size)' in open_
    assert 'bindgen_lua::push_shared<Kennel>' in open_


def test_method_tables(lua_module):
    methods = function_body(lua_module, 'static const luaL_Reg Dog_methods[] = {', '\n};\n')
    assert '{"get_tag_key", l_Dog_getTag_key},' in methods
    assert 'l_Dog_make' not in methods
    statics = function_body(lua_module, 'static const luaL_Reg Dog_statics[] = {', '\n};\n')
    assert '{"make", l_Dog_make},' in statics
    assert '{"registry", l_Dog_registry},' in statics


def test_properties_resolved_through_bases(lua_module):
    index = function_body(lua_module, 'static int l_Puppy__index(lua_State* L) {')
    assert 'if (strcmp(key, "name") == 0) return l_Dog_name(L);' in index


def test_iterable(lua_module):
    body = function_body(lua_module, 'static int l_Kennel__iter(lua_State* L) {')
    assert 'bindgen_lua::push_class<zoo::Dog>(L, _elem, "bindings.Dog");' in body
    assert 'bindgen_lua::next_in_sequence' in body
    assert '{"iter", l_Kennel__iter},' in lua_module
    assert 'l_Kennel_iter' not in lua_module


def test_metatables_registered_bases_first(lua_module):
    body = function_body(lua_module, 'static void register_metatables(lua_State* L) {')
    assert body.index('luaL_newmetatable(L, "bindings.Dog");') < body.index('luaL_newmetatable(L, "bindings.Puppy");')
    assert 'lua_setfield(L, -2, "__base");' in body
    assert 'bindgen_lua::destroy<std::shared_ptr<Kennel>>' in body
    assert 'bindgen_lua::destroy<zoo::Dog>' in body


def test_enums(lua_module):
    assert 'static_assert(int64_t(zoo::Size::Large) == 10, "Size.Large has an unexpected value");' in lua_module
    body = function_body(lua_module, 'static void register_enum_Color(lua_State* L) {')
    assert 'lua_pushinteger(L, 2);\n    lua_setfield(L, -2, "White");' in body
    assert body.rstrip().endswith('lua_setfield(L, -2, "Color");')
