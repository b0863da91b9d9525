"""
Error types

Every failure raised by the front end and the code generators derives from
BindgenError so the entry point has a single thing to catch.
"""

from typing import Optional


class BindgenError(Exception):
    """Base class for all spec_bindgen errors"""


class TypeSpecSyntaxError(BindgenError):
    """Grammar violation in a type expression or function signature"""

    def __init__(self, message: str, text: str, span: Optional[tuple[int, int]] = None):
        self.message = message
        self.text = text
        self.span = span  # None when input ended early
        super().__init__(self.render())

    @property
    def at_end(self) -> bool:
        return self.span is None

    def render(self) -> str:
        """Render the message with a caret line under the offending token"""
        if self.span is None:
            return f'{self.message} AT END\n    {self.text}\n    {" " * len(self.text)}^'
        start, end = self.span
        carets = '^' * max(1, end - start)
        return f'{self.message}\n    {self.text}\n    {" " * start}{carets}'


class LexError(TypeSpecSyntaxError):
    """Character sequence that matches no token"""


class SpecNormalizationError(BindgenError):
    """Malformed specification document entry"""

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f'{path}: {message}')


class BindError(BindgenError):
    """Violated binder invariant (fatal to the whole run)"""


class ConversionError(BindgenError):
    """A backend has no rule for a type it was asked to convert"""
