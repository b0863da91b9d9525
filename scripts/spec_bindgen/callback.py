"""
Callback binding generation module

Generates named adapters for callback-typed record fields and the completion
handlers that resume a coroutine when an async method finishes.
"""

from typing import TYPE_CHECKING

from .codegen import CodeGen, to_cpp
from .errors import ConversionError

if TYPE_CHECKING:
    from .model import Field, Func, Method, Struct
    from .types import TypeConverter


class CallbackGenerator:
    """Generates callback shims"""

    def __init__(self, type_conv: 'TypeConverter'):
        self.type_conv = type_conv

    def adapter_name(self, struct: 'Struct', field: 'Field') -> str:
        return f'callback_from_lua_{struct.name}_{field.name}'

    def generate_field_adapter(self, struct: 'Struct', field: 'Field', gen: CodeGen):
        """Generate a function turning the Lua value at idx into the field's callable"""
        cpp_type = to_cpp(field.type.remove_const_ref())
        gen.line(f'static {cpp_type} {self.adapter_name(struct, field)}(lua_State* L, int idx) {{')
        gen.indent()
        gen.line(f'return {self.type_conv.from_host(field.type, "idx")};')
        gen.dedent()
        gen.line('}')
        gen.line()

    def completion_handler(self, method: 'Method') -> str:
        """Expression for the callback passed as an async method's last argument

        The handler captures the calling coroutine and resumes it with either
        the result value or the error.
        """
        last = method.sig.args[-1].type.remove_const_ref()
        cb: 'Func' = last.args[0]
        if cb.kind != 'Func':
            raise ConversionError(f'{method.id}: async callback does not wrap a function type')

        params = ', '.join(f'{to_cpp(a.type)} {a.name}' for a in cb.args)
        err = cb.args[-1]
        lines = [
            f'[_thread = bindgen_lua::current_thread(L)] ({params}) {{',
            'lua_State* L = _thread->state();',
            f'if (bindgen_lua::is_error({err.name})) {{',
            f'{self.type_conv.to_host(err.type, err.name)};',
            '_thread->resume_error();',
            'return;',
            '}',
        ]
        if len(cb.args) == 2:
            value = cb.args[0]
            lines.append(f'{self.type_conv.to_host(value.type, f"std::move({value.name})")};')
            lines.append('_thread->resume(1);')
        else:
            lines.append('_thread->resume(0);')
        lines.append('}')
        return '\n'.join(lines)
