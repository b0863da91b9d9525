"""
Type expression parser

Recursive descent parser for the restricted type/signature language used in
specification documents:

    Type         := Function | RefType
    RefType      := Base ( '&' | '&&' )?
    Base         := 'const'? Core Modifier*
    Modifier     := 'const' | '*'
    Core         := Identifier ('::' Identifier)* ( '<' Type (',' Type)* '>' )?
    Function     := '(' [Arg (',' Arg)*] ')' FuncModifier* ( '->' Type )?
    Arg          := Identifier ':' Type
    FuncModifier := 'const' | 'noexcept' | 'off_thread'

The result is a purely structural TypeSpec tree; names are not resolved here.
"""

from dataclasses import dataclass
from typing import Optional, Union

from .errors import TypeSpecSyntaxError
from .lexer import CONST, IDENT, NOEXCEPT, Token, tokenize

MODIFIER_KINDS = ('const', 'pointer', 'ref', 'rref')
FUNC_MODIFIERS = ('const', 'noexcept', 'off_thread')


@dataclass(frozen=True)
class TypeName:
    name: str


@dataclass(frozen=True)
class TemplateInstance:
    name: str
    args: tuple['TypeSpec', ...]


@dataclass(frozen=True)
class FunctionArg:
    name: str
    type: 'TypeSpec'


@dataclass(frozen=True)
class FunctionType:
    args: tuple[FunctionArg, ...]
    ret: 'TypeSpec'
    is_const: bool = False
    is_noexcept: bool = False
    is_off_thread: bool = False


@dataclass(frozen=True)
class Modifier:
    kind: str  # one of MODIFIER_KINDS
    inner: 'TypeSpec'

    def __post_init__(self):
        if self.kind not in MODIFIER_KINDS:
            raise ValueError(f'unknown modifier kind {self.kind!r}')


TypeSpec = Union[TypeName, TemplateInstance, FunctionType, Modifier]

VOID = TypeName('void')


class _Parser:
    """Single-use cursor over the tokens of one expression"""

    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.pos = 0

    def peek(self) -> Optional[Token]:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def next(self, what: str) -> Token:
        tok = self.peek()
        if tok is None:
            self.fail(f'Expected {what}')
        self.pos += 1
        return tok

    def fail(self, message: str, tok: Optional[Token] = None):
        if tok is None:
            tok = self.peek()
        span = (tok.start, tok.end) if tok is not None else None
        raise TypeSpecSyntaxError(message, self.text, span)

    def accept_punct(self, text: str) -> bool:
        tok = self.peek()
        if tok is not None and tok.is_punct(text):
            self.pos += 1
            return True
        return False

    def expect_punct(self, text: str):
        tok = self.next(f"'{text}'")
        if not tok.is_punct(text):
            self.fail(f"Expected '{text}' but got '{tok.text}'", tok)

    def expect_ident(self, what: str) -> str:
        tok = self.next(what)
        if tok.kind != IDENT:
            self.fail(f"Expected {what} but got '{tok.text}'", tok)
        return tok.text

    def parse_all(self) -> TypeSpec:
        result = self.parse_type()
        tok = self.peek()
        if tok is not None:
            self.fail(f"Unexpected '{tok.text}' after complete type", tok)
        return result

    def parse_type(self) -> TypeSpec:
        tok = self.peek()
        if tok is not None and tok.is_punct('('):
            return self.parse_function()
        return self.parse_ref_type()

    def parse_ref_type(self) -> TypeSpec:
        result = self.parse_base()
        if self.accept_punct('&'):
            result = Modifier('ref', result)
        elif self.accept_punct('&&'):
            result = Modifier('rref', result)
        else:
            return result

        # Nothing may follow a reference
        tok = self.peek()
        if tok is not None and (tok.kind == CONST or tok.is_punct('*')
                                or tok.is_punct('&') or tok.is_punct('&&')):
            self.fail(f"Modifier '{tok.text}' is not allowed after a reference", tok)
        return result

    def parse_base(self) -> TypeSpec:
        leading_const = False
        tok = self.peek()
        if tok is not None and tok.kind == CONST:
            self.pos += 1
            leading_const = True

        result = self.parse_core()
        if leading_const:
            result = Modifier('const', result)

        while True:
            tok = self.peek()
            if tok is not None and tok.kind == CONST:
                self.pos += 1
                result = Modifier('const', result)
            elif tok is not None and tok.is_punct('*'):
                self.pos += 1
                result = Modifier('pointer', result)
            else:
                return result

    def parse_core(self) -> TypeSpec:
        names = [self.expect_ident('a type name')]
        while self.accept_punct('::'):
            names.append(self.expect_ident("a name after '::'"))
        name = '::'.join(names)

        if not self.accept_punct('<'):
            return TypeName(name)

        args = [self.parse_type()]
        while self.accept_punct(','):
            args.append(self.parse_type())
        self.expect_punct('>')
        return TemplateInstance(name, tuple(args))

    def parse_function(self) -> FunctionType:
        self.expect_punct('(')
        args = []
        if not self.accept_punct(')'):
            while True:
                arg_name = self.expect_ident('an argument name')
                self.expect_punct(':')
                args.append(FunctionArg(arg_name, self.parse_type()))
                if self.accept_punct(')'):
                    break
                self.expect_punct(',')

        seen: set[str] = set()
        while True:
            tok = self.peek()
            if tok is None or not (tok.kind in (CONST, NOEXCEPT, IDENT)):
                break
            if tok.text not in FUNC_MODIFIERS:
                self.fail(f"Unknown function modifier '{tok.text}'", tok)
            if tok.text in seen:
                self.fail(f"Duplicate function modifier '{tok.text}'", tok)
            seen.add(tok.text)
            self.pos += 1

        ret = VOID
        if self.accept_punct('->'):
            ret = self.parse_type()

        return FunctionType(
            args=tuple(args),
            ret=ret,
            is_const='const' in seen,
            is_noexcept='noexcept' in seen,
            is_off_thread='off_thread' in seen,
        )


def parse_type(text: str) -> TypeSpec:
    """Parse a type expression or function signature into a TypeSpec tree

    Examples:
        'foo const*&&' -> Modifier('rref', Modifier('pointer', Modifier('const', TypeName('foo'))))
        '(n: int)' -> FunctionType((FunctionArg('n', TypeName('int')),), TypeName('void'))
    """
    return _Parser(text).parse_all()


def format_type_spec(spec: TypeSpec) -> str:
    """Render a TypeSpec back to text that parses to an equal tree"""
    if isinstance(spec, TypeName):
        return spec.name
    if isinstance(spec, TemplateInstance):
        return f'{spec.name}<{", ".join(format_type_spec(a) for a in spec.args)}>'
    if isinstance(spec, FunctionType):
        args = ', '.join(f'{a.name}: {format_type_spec(a.type)}' for a in spec.args)
        flags = ''.join(f' {flag}' for flag, on in (
            ('const', spec.is_const),
            ('noexcept', spec.is_noexcept),
            ('off_thread', spec.is_off_thread),
        ) if on)
        return f'({args}){flags} -> {format_type_spec(spec.ret)}'
    if isinstance(spec, Modifier):
        inner = format_type_spec(spec.inner)
        suffix = {'const': ' const', 'pointer': '*', 'ref': '&', 'rref': '&&'}[spec.kind]
        return inner + suffix
    raise TypeError(f'not a TypeSpec: {spec!r}')
