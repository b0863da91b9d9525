"""
spec_bindgen - specification-driven binding generation for C++ libraries

This framework compiles a declarative description of a native API surface
into a resolved, immutable model (BoundSpec) and walks that model with
independent backends that emit marshalling glue. It ships a Lua C API
backend and a LuaCATS annotation backend built on the same conversion
protocol.
"""

from .errors import (
    BindgenError, TypeSpecSyntaxError, LexError, SpecNormalizationError, BindError, ConversionError,
)
from .lexer import Token, tokenize
from .parser import (
    TypeName, TemplateInstance, FunctionArg, FunctionType, Modifier, TypeSpec,
    parse_type, format_type_spec,
)
from .spec import Spec, load_document, merge_documents, normalize_spec
from .model import BoundSpec, Class, Struct, Enum, Func, Method, Template, Primitive
from .binder import bind_model
from .types import TypeConverter, TypeHandler, ConversionContext, ConversionRules, Direction
from .codegen import CodeGen, display_name, to_cpp
from .lua_rules import LuaRules
from .struct import StructGenerator
from .func import FuncGenerator
from .callback import CallbackGenerator
from .enum import EnumGenerator
from .luacats import LuaCATSGenerator
from .generator import Generator, GeneratorConfig

__all__ = [
    'BindgenError', 'TypeSpecSyntaxError', 'LexError', 'SpecNormalizationError', 'BindError',
    'ConversionError',
    'Token', 'tokenize',
    'TypeName', 'TemplateInstance', 'FunctionArg', 'FunctionType', 'Modifier', 'TypeSpec',
    'parse_type', 'format_type_spec',
    'Spec', 'load_document', 'merge_documents', 'normalize_spec',
    'BoundSpec', 'Class', 'Struct', 'Enum', 'Func', 'Method', 'Template', 'Primitive',
    'bind_model',
    'TypeConverter', 'TypeHandler', 'ConversionContext', 'ConversionRules', 'Direction',
    'CodeGen', 'display_name', 'to_cpp',
    'LuaRules',
    'StructGenerator',
    'FuncGenerator',
    'CallbackGenerator',
    'EnumGenerator',
    'LuaCATSGenerator',
    'Generator', 'GeneratorConfig',
]
