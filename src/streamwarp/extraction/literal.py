"""
Restricted JavaScript data-literal parser.

Parses the literal subset of JavaScript (objects, arrays, strings, numbers,
booleans, null/undefined, `void 0`, comments, unquoted keys, trailing commas)
into Python values. Anything executable - identifiers, calls, spreads,
computed keys, template substitutions - is rejected with LiteralSyntaxError.
No code is ever evaluated. Identifiers are accepted only when the caller
binds them to already-parsed values.
"""
import re
from typing import Any, Mapping, Optional

MAX_DEPTH = 200

_NUMBER = re.compile(
    r'[+-]?(?:0[xX][0-9a-fA-F_]+|0[oO][0-7_]+|0[bB][01_]+'
    r'|(?:\d[\d_]*(?:\.[\d_]*)?|\.\d[\d_]*)(?:[eE][+-]?\d+)?)'
)
_IDENTIFIER = re.compile(r'[A-Za-z_$][\w$]*')
_KEYWORDS = {'true': True, 'false': False, 'null': None, 'undefined': None}
_SIMPLE_ESCAPES = {
    'n': '\n', 't': '\t', 'r': '\r', 'b': '\b', 'f': '\f', 'v': '\v', '0': '\0',
}
_OPENERS = {'{': '}', '[': ']', '(': ')'}


class LiteralSyntaxError(ValueError):
    """Input is not a pure data literal."""

    def __init__(self, message: str, position: int):
        super().__init__(f"{message} at offset {position}")
        self.position = position


def parse_js_literal(source: str, bindings: Optional[Mapping[str, Any]] = None) -> Any:
    """
    Parse a complete JS data literal; trailing non-whitespace is an error.

    bindings maps identifiers (function parameters) to their values.
    """
    parser = _LiteralParser(source, bindings)
    value = parser.parse_value(0)
    parser.skip_whitespace()
    if parser.pos != len(source):
        raise LiteralSyntaxError("Unexpected trailing input", parser.pos)
    return value


def parse_js_string(source: str) -> str:
    """Parse a single quoted JS string literal."""
    parser = _LiteralParser(source)
    parser.skip_whitespace()
    if parser.peek() not in ('"', "'", '`'):
        raise LiteralSyntaxError("Expected a string literal", parser.pos)
    value = parser.parse_value(0)
    parser.skip_whitespace()
    if parser.pos != len(source):
        raise LiteralSyntaxError("Unexpected trailing input", parser.pos)
    return value


def find_balanced_end(source: str, start: int) -> Optional[int]:
    """
    Index just past the bracket that closes the one at source[start].

    Skips string literals, template literals and comments so that braces
    inside them do not count. Returns None when unbalanced.
    """
    if start >= len(source) or source[start] not in _OPENERS:
        return None

    stack = []
    pos = start
    length = len(source)
    while pos < length:
        ch = source[pos]
        if ch in ('"', "'", '`'):
            pos = _skip_string(source, pos)
            if pos is None:
                return None
            continue
        if ch == '/' and pos + 1 < length and source[pos + 1] in '/*':
            pos = _skip_comment(source, pos)
            continue
        if ch in _OPENERS:
            stack.append(_OPENERS[ch])
        elif ch in ('}', ']', ')'):
            if not stack or stack.pop() != ch:
                return None
            if not stack:
                return pos + 1
        pos += 1
    return None


def _skip_string(source: str, pos: int) -> Optional[int]:
    quote = source[pos]
    pos += 1
    while pos < len(source):
        ch = source[pos]
        if ch == '\\':
            pos += 2
            continue
        if ch == quote:
            return pos + 1
        pos += 1
    return None


def _skip_comment(source: str, pos: int) -> int:
    if source[pos + 1] == '/':
        end = source.find('\n', pos)
        return len(source) if end == -1 else end + 1
    end = source.find('*/', pos + 2)
    return len(source) if end == -1 else end + 2


class _LiteralParser:
    def __init__(self, source: str, bindings: Optional[Mapping[str, Any]] = None):
        self.source = source
        self.pos = 0
        self.bindings = bindings or {}

    def peek(self) -> str:
        return self.source[self.pos] if self.pos < len(self.source) else ''

    def error(self, message: str):
        raise LiteralSyntaxError(message, self.pos)

    def skip_whitespace(self) -> None:
        source = self.source
        while self.pos < len(source):
            ch = source[self.pos]
            if ch.isspace() or ch == '\ufeff':
                self.pos += 1
            elif ch == '/' and self.pos + 1 < len(source) and source[self.pos + 1] in '/*':
                self.pos = _skip_comment(source, self.pos)
            else:
                break

    def expect(self, ch: str) -> None:
        self.skip_whitespace()
        if self.peek() != ch:
            self.error(f"Expected '{ch}'")
        self.pos += 1

    def parse_value(self, depth: int) -> Any:
        if depth > MAX_DEPTH:
            self.error("Literal nested too deeply")
        self.skip_whitespace()
        ch = self.peek()
        if ch == '{':
            return self.parse_object(depth)
        if ch == '[':
            return self.parse_array(depth)
        if ch in ('"', "'"):
            return self.parse_string(ch)
        if ch == '`':
            return self.parse_template()
        if ch and (ch.isdigit() or ch in '+-.'):
            return self.parse_number()
        if ch == '':
            self.error("Unexpected end of input")

        match = _IDENTIFIER.match(self.source, self.pos)
        if match:
            word = match.group(0)
            if word in _KEYWORDS:
                self.pos = match.end()
                return _KEYWORDS[word]
            if word in self.bindings:
                self.pos = match.end()
                return self.bindings[word]
            if word == 'void':
                # void <literal> is undefined
                self.pos = match.end()
                self.parse_value(depth + 1)
                return None
            self.error(f"Identifier '{word}' is not a literal")
        self.error(f"Unexpected character {ch!r}")

    def parse_object(self, depth: int) -> dict:
        self.pos += 1
        result = {}
        while True:
            self.skip_whitespace()
            if self.peek() == '}':
                self.pos += 1
                return result
            key = self.parse_key()
            self.skip_whitespace()
            if self.peek() != ':':
                self.error("Expected ':' (shorthand and method properties are not literals)")
            self.pos += 1
            result[key] = self.parse_value(depth + 1)
            self.skip_whitespace()
            ch = self.peek()
            if ch == ',':
                self.pos += 1
            elif ch == '}':
                self.pos += 1
                return result
            else:
                self.error("Expected ',' or '}'")

    def parse_key(self) -> str:
        ch = self.peek()
        if ch in ('"', "'"):
            return self.parse_string(ch)
        if ch and (ch.isdigit() or ch == '.'):
            number = self.parse_number()
            if isinstance(number, float) and number.is_integer():
                number = int(number)
            return str(number)
        match = _IDENTIFIER.match(self.source, self.pos)
        if match:
            self.pos = match.end()
            return match.group(0)
        if ch == '[':
            self.error("Computed keys are not literals")
        if ch == '.':
            self.error("Spread is not a literal")
        self.error("Expected a property name")

    def parse_array(self, depth: int) -> list:
        self.pos += 1
        result = []
        while True:
            self.skip_whitespace()
            ch = self.peek()
            if ch == ']':
                self.pos += 1
                return result
            if ch == ',':
                # Elision: [1,,2]
                result.append(None)
                self.pos += 1
                continue
            result.append(self.parse_value(depth + 1))
            self.skip_whitespace()
            ch = self.peek()
            if ch == ',':
                self.pos += 1
            elif ch == ']':
                self.pos += 1
                return result
            else:
                self.error("Expected ',' or ']'")

    def parse_number(self):
        match = _NUMBER.match(self.source, self.pos)
        if not match or match.group(0) in ('+', '-', '.'):
            self.error("Invalid number")
        text = match.group(0).replace('_', '')
        self.pos = match.end()

        sign = -1 if text.startswith('-') else 1
        body = text.lstrip('+-')
        prefix = body[:2].lower()
        if prefix == '0x':
            return sign * int(body[2:], 16)
        if prefix == '0o':
            return sign * int(body[2:], 8)
        if prefix == '0b':
            return sign * int(body[2:], 2)
        if '.' in body or 'e' in body.lower():
            return sign * float(body)
        return sign * int(body)

    def parse_string(self, quote: str) -> str:
        self.pos += 1
        chunks = []
        source = self.source
        while True:
            if self.pos >= len(source):
                self.error("Unterminated string")
            ch = source[self.pos]
            if ch == quote:
                self.pos += 1
                return _join(chunks)
            if ch == '\\':
                chunks.append(self.parse_escape())
                continue
            if ch in '\r\n':
                self.error("Newline in string literal")
            chunks.append(ch)
            self.pos += 1

    def parse_template(self) -> str:
        self.pos += 1
        chunks = []
        source = self.source
        while True:
            if self.pos >= len(source):
                self.error("Unterminated template literal")
            ch = source[self.pos]
            if ch == '`':
                self.pos += 1
                return _join(chunks)
            if ch == '$' and source.startswith('${', self.pos):
                self.error("Template substitutions are not literals")
            if ch == '\\':
                chunks.append(self.parse_escape())
                continue
            chunks.append(ch)
            self.pos += 1

    def parse_escape(self) -> str:
        source = self.source
        self.pos += 1
        if self.pos >= len(source):
            self.error("Unterminated escape")
        ch = source[self.pos]
        self.pos += 1
        if ch in _SIMPLE_ESCAPES:
            return _SIMPLE_ESCAPES[ch]
        if ch == 'x':
            return self._hex_escape(2)
        if ch == 'u':
            if self.peek() == '{':
                end = source.find('}', self.pos)
                if end == -1:
                    self.error("Unterminated unicode escape")
                digits = source[self.pos + 1:end]
                self.pos = end + 1
                return self._code_point(digits)
            return self._hex_escape(4)
        if ch == '\r':
            if self.peek() == '\n':
                self.pos += 1
            return ''
        if ch in '\n\u2028\u2029':
            return ''
        return ch

    def _hex_escape(self, width: int) -> str:
        digits = self.source[self.pos:self.pos + width]
        self.pos += width
        return self._code_point(digits, width)

    def _code_point(self, digits: str, width: Optional[int] = None) -> str:
        if not digits or (width and len(digits) != width):
            self.error("Invalid escape sequence")
        try:
            return chr(int(digits, 16))
        except ValueError:
            self.error("Invalid escape sequence")


def _join(chunks) -> str:
    text = ''.join(chunks)
    if any('\ud800' <= ch <= '\udfff' for ch in text):
        # \uD83D\uDE00 escapes arrive as two surrogates; merge them
        text = text.encode('utf-16', 'surrogatepass').decode('utf-16', 'replace')
    return text
