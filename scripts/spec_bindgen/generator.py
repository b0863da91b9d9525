"""
Main generator module

Orchestrates all components: specification files are loaded, normalized and
bound once, then every enabled backend renders from the same BoundSpec.
Nothing is written until every backend has succeeded.
"""

import os
import shlex
import subprocess
from dataclasses import dataclass, field
from typing import Callable, Optional

import yaml

from .binder import bind_model
from .callback import CallbackGenerator
from .codegen import CodeGen, as_identifier, display_name
from .enum import EnumGenerator
from .errors import BindgenError
from .func import FuncGenerator
from .lua_rules import RUNTIME_HEADER, LuaRules
from .luacats import LuaCATSGenerator
from .model import BoundSpec, Class
from .spec import Spec
from .struct import StructGenerator
from .types import TypeConverter

DEFAULT_BACKENDS = ('lua', 'luacats')

# Backends whose output is C++ and goes through the formatter
CPP_BACKENDS = ('lua',)


@dataclass
class GeneratorConfig:
    """Configuration for one generator run"""
    spec_paths: list[str]
    output_dir: str = 'gen'
    module_name: str = 'bindings'
    backends: list[str] = field(default_factory=lambda: list(DEFAULT_BACKENDS))
    formatter: Optional[str] = None  # eg 'clang-format -i'


class Generator:
    """Main binding generator"""

    def __init__(self, config: GeneratorConfig):
        self.config = config
        self._backends: dict[str, tuple[str, Callable[[BoundSpec], str]]] = {
            'lua': (f'{config.module_name}.cpp', self._generate_lua),
            'luacats': (f'{config.module_name}.lua', self._generate_luacats),
        }

    def load(self) -> Spec:
        """Load and normalize the configured specification files"""
        if not self.config.spec_paths:
            raise BindgenError('no specification files given')
        return Spec.load(*self.config.spec_paths)

    def bind(self) -> BoundSpec:
        return bind_model(self.load())

    def dump_model(self) -> str:
        """YAML rendering of the bound model"""
        return yaml.safe_dump(self.bind().to_dict(), sort_keys=False)

    def render(self, spec: BoundSpec) -> dict[str, str]:
        """Render every enabled backend into memory, keyed by output file name"""
        outputs = {}
        for name in self.config.backends:
            if name not in self._backends:
                raise BindgenError(f'unknown backend {name!r}; expected one of {", ".join(self._backends)}')
            file_name, render = self._backends[name]
            outputs[file_name] = render(spec)
        return outputs

    def generate(self) -> list[str]:
        """Run the whole pipeline and return the written paths"""
        print('=== Generating bindings:')
        outputs = self.render(self.bind())

        os.makedirs(self.config.output_dir, exist_ok=True)
        sources = ', '.join(self.config.spec_paths)
        written = [os.path.join(self.config.output_dir, file_name) for file_name in outputs]
        self._write_all(written, list(outputs.values()))
        for path in written:
            print(f'  {sources} => {path}')

        self._format([os.path.join(self.config.output_dir, self._backends[b][0])
                      for b in self.config.backends if b in CPP_BACKENDS])
        return written

    def _write_all(self, paths: list[str], texts: list[str]):
        """Write every output beside its target, then move them all into place

        A failed write removes the partial files so no output is replaced.
        """
        staged = []
        try:
            for path, text in zip(paths, texts):
                tmp_path = path + '.tmp'
                staged.append(tmp_path)
                with open(tmp_path, 'w', newline='\n') as f:
                    f.write(text)
        except OSError:
            for tmp_path in staged:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
            raise
        for tmp_path, path in zip(staged, paths):
            os.replace(tmp_path, path)

    def _format(self, paths: list[str]):
        """Run the external formatter over generated C++ files"""
        if not self.config.formatter or not paths:
            return
        try:
            subprocess.run(shlex.split(self.config.formatter) + paths, check=True)
        except (OSError, subprocess.CalledProcessError) as err:
            raise BindgenError(f'formatter failed: {err}') from err

    def _generate_lua(self, spec: BoundSpec) -> str:
        """Generate the Lua C API module"""
        gen = CodeGen()
        module_name = self.config.module_name

        # Header
        gen.line('// machine generated, do not edit')
        gen.line('#include <cstring>')
        gen.line('#include <lua.hpp>')
        gen.line()
        for header in spec.headers:
            gen.line(f'#include {header}' if header.startswith('<') else f'#include "{header}"')
        gen.line(f'#include "{RUNTIME_HEADER}"')
        gen.line()

        # BINDGEN_API macro
        gen.line('#ifndef BINDGEN_API')
        gen.line('  #ifdef _WIN32')
        gen.line('    #define BINDGEN_API extern "C" __declspec(dllexport)')
        gen.line('  #else')
        gen.line('    #define BINDGEN_API extern "C"')
        gen.line('  #endif')
        gen.line('#endif')
        gen.line()

        # Create generators
        rules = LuaRules(module_name)
        type_conv = TypeConverter(rules, spec)
        callback_gen = CallbackGenerator(type_conv)
        struct_gen = StructGenerator(type_conv, callback_gen)
        func_gen = FuncGenerator(type_conv, callback_gen)
        enum_gen = EnumGenerator()

        for enum in spec.enums:
            enum_gen.generate_checks(enum, gen)

        # Generate struct bindings
        for struct in spec.records:
            struct_gen.declare(struct, gen)
        if spec.records:
            gen.line()
        for struct in spec.records:
            struct_gen.generate(struct, gen)

        # Generate method wrappers
        for cls in spec.classes:
            for method in cls.methods:
                func_gen.generate(method, gen)
            if cls.iterable is not None:
                func_gen.generate_iter(cls, gen)
            func_gen.generate_index(cls, gen)

        # Generate enum registration
        for enum in spec.enums:
            enum_gen.generate(enum, gen)

        for cls in spec.classes:
            self._gen_method_tables(cls, func_gen, gen)

        self._gen_metatable_registration(spec.classes, rules, gen)
        self._gen_luaopen(spec, gen)

        return gen.output() + '\n'

    def _gen_method_tables(self, cls: Class, func_gen: FuncGenerator, gen: CodeGen):
        """Generate luaL_Reg arrays for instance methods and for static functions"""
        instance = [m for m in cls.methods if not m.is_static and not m.is_property]
        static = [m for m in cls.methods if m.is_static]

        with gen.block(f'static const luaL_Reg {cls.name}_methods[] = {{', '};'):
            for method in instance:
                gen.line(f'{{"{display_name(method)}", {func_gen.wrapper_name(method)}}},')
            if cls.iterable is not None:
                gen.line(f'{{"iter", l_{cls.name}__iter}},')
            gen.line('{NULL, NULL}')
        gen.line()

        with gen.block(f'static const luaL_Reg {cls.name}_statics[] = {{', '};'):
            for method in static:
                gen.line(f'{{"{display_name(method)}", {func_gen.wrapper_name(method)}}},')
            gen.line('{NULL, NULL}')
        gen.line()

    def _gen_metatable_registration(self, classes, rules: LuaRules, gen: CodeGen):
        """Generate metatable registration function

        Classes arrive bases first, so a base metatable always exists by the
        time its subclasses chain their method tables to it.
        """
        gen.line('static void register_metatables(lua_State* L) {')
        gen.indent()

        for cls in classes:
            gen.line(f'luaL_newmetatable(L, "{rules.metatable(cls.name)}");')
            gen.line(f'luaL_newlib(L, {cls.name}_methods);')
            if cls.base is not None:
                # Missing methods are looked up in the base's method table
                gen.line('lua_createtable(L, 0, 1);')
                gen.line(f'luaL_getmetatable(L, "{rules.metatable(cls.base.name)}");')
                gen.line('lua_getfield(L, -1, "__methods");')
                gen.line('lua_setfield(L, -3, "__index");')
                gen.line('lua_pop(L, 1);')
                gen.line('lua_setmetatable(L, -2);')
            gen.line('lua_setfield(L, -2, "__methods");')
            gen.line(f'lua_pushcfunction(L, l_{cls.name}__index);')
            gen.line('lua_setfield(L, -2, "__index");')
            gen.line(f'lua_pushcfunction(L, bindgen_lua::destroy<{rules.stored_type(cls)}>);')
            gen.line('lua_setfield(L, -2, "__gc");')
            if cls.base is not None:
                gen.line(f'luaL_getmetatable(L, "{rules.metatable(cls.base.name)}");')
                gen.line('lua_setfield(L, -2, "__base");')
            gen.line('lua_pop(L, 1);')
            gen.line()

        gen.dedent()
        gen.line('}')
        gen.line()

    def _gen_luaopen(self, spec: BoundSpec, gen: CodeGen):
        """Generate luaopen function"""
        module_id = as_identifier(self.config.module_name)
        gen.line(f'BINDGEN_API int luaopen_{module_id}(lua_State* L) {{')
        gen.indent()
        gen.line('register_metatables(L);')
        gen.line(f'lua_createtable(L, 0, {len(spec.classes) + len(spec.enums)});')

        for cls in spec.classes:
            gen.line(f'luaL_newlib(L, {cls.name}_statics);')
            gen.line(f'lua_setfield(L, -2, "{display_name(cls)}");')

        for enum in spec.enums:
            gen.line(f'register_enum_{enum.name}(L);')

        gen.line('return 1;')
        gen.dedent()
        gen.line('}')

    def _generate_luacats(self, spec: BoundSpec) -> str:
        """Generate LuaCATS type definitions"""
        return LuaCATSGenerator(spec, self.config.module_name).generate()
