# infrastructure/syntax/swift_tree.py
"""
Lossless Swift declaration tree.

The tokenizer splits source text into tokens that cover every character
(whitespace, newlines and comments are kept as trivia tokens), so
``render(parse(text)) == text`` holds for any input, including text that is
not valid Swift. On top of the token stream the scanner recognises the
declarations the transforms work with: imports, stored/computed properties
and functions with their bodies.

Mutations never edit tokens in place: they splice the text and re-parse, so
every tree handed out is consistent with its own text.
"""
import re
from bisect import bisect_right
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Set, Tuple


class TokenKind(Enum):
    WHITESPACE = "whitespace"
    NEWLINE = "newline"
    LINE_COMMENT = "lineComment"
    BLOCK_COMMENT = "blockComment"
    STRING = "string"
    IDENTIFIER = "identifier"
    NUMBER = "number"
    PUNCTUATION = "punctuation"


TRIVIA_KINDS = frozenset({
    TokenKind.WHITESPACE,
    TokenKind.NEWLINE,
    TokenKind.LINE_COMMENT,
    TokenKind.BLOCK_COMMENT,
})


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    start: int
    line: int

    @property
    def end(self) -> int:
        return self.start + len(self.text)

    @property
    def is_trivia(self) -> bool:
        return self.kind in TRIVIA_KINDS


# Tokenizer

_IDENTIFIER = re.compile(r"(?!\d)\w+")
_NUMBER = re.compile(r"0[xob][0-9a-fA-F_]+|\d[\d_]*(?:\.\d[\d_]*)?(?:[eE][+-]?\d+)?")
_RAW_STRING_OPEN = re.compile(r'#+"')
_OPERATOR_CHARS = set("+-*/=<>!&|^~?%.")


def _newline_count(text: str) -> int:
    return text.count("\n") + text.count("\r") - text.count("\r\n")


def _scan_string(text: str, i: int) -> int:
    """Return the offset just past the string literal opening at ``i``"""
    n = len(text)
    hashes = 0
    while i + hashes < n and text[i + hashes] == "#":
        hashes += 1
    j = i + hashes
    delimiter = '"""' if text.startswith('"""', j) else '"'
    closing = delimiter + "#" * hashes
    escape = "\\" + "#" * hashes
    k = j + len(delimiter)
    while k < n:
        if text.startswith(escape, k):
            k += len(escape)
            if k < n and text[k] == "(":
                k = _skip_interpolation(text, k)
            else:
                k += 1
            continue
        if text.startswith(closing, k):
            return k + len(closing)
        if delimiter == '"' and text[k] in "\r\n":
            # Unterminated single-line literal ends at the line break
            return k
        k += 1
    return n


def _skip_interpolation(text: str, k: int) -> int:
    n = len(text)
    depth = 0
    while k < n:
        c = text[k]
        if c == '"' or (c == "#" and _RAW_STRING_OPEN.match(text, k)):
            k = _scan_string(text, k)
            continue
        if c == "(":
            depth += 1
        elif c == ")":
            depth -= 1
            if depth == 0:
                return k + 1
        k += 1
    return n


def _scan_block_comment(text: str, i: int) -> int:
    n = len(text)
    depth = 0
    k = i
    while k < n:
        if text.startswith("/*", k):
            depth += 1
            k += 2
        elif text.startswith("*/", k):
            depth -= 1
            k += 2
            if depth == 0:
                return k
        else:
            k += 1
    return n


def tokenize(text: str) -> List[Token]:
    """Split ``text`` into tokens whose concatenation is exactly ``text``"""
    tokens: List[Token] = []
    n = len(text)
    i = 0
    line = 1

    while i < n:
        c = text[i]
        if c == "\n":
            kind, end = TokenKind.NEWLINE, i + 1
        elif c == "\r":
            kind, end = TokenKind.NEWLINE, i + (2 if text.startswith("\r\n", i) else 1)
        elif c in " \t\f\v":
            end = i + 1
            while end < n and text[end] in " \t\f\v":
                end += 1
            kind = TokenKind.WHITESPACE
        elif text.startswith("//", i):
            end = i
            while end < n and text[end] not in "\r\n":
                end += 1
            kind = TokenKind.LINE_COMMENT
        elif text.startswith("/*", i):
            kind, end = TokenKind.BLOCK_COMMENT, _scan_block_comment(text, i)
        elif c == '"' or (c == "#" and _RAW_STRING_OPEN.match(text, i)):
            kind, end = TokenKind.STRING, _scan_string(text, i)
        elif c == "`":
            close = text.find("`", i + 1)
            end = close + 1 if close != -1 and "\n" not in text[i:close] else i + 1
            kind = TokenKind.IDENTIFIER if end > i + 1 else TokenKind.PUNCTUATION
        elif c in "#$" and _IDENTIFIER.match(text, i + 1):
            kind, end = TokenKind.IDENTIFIER, _IDENTIFIER.match(text, i + 1).end()
        elif c == "$" and i + 1 < n and text[i + 1].isdigit():
            end = i + 1
            while end < n and text[end].isdigit():
                end += 1
            kind = TokenKind.IDENTIFIER
        elif c.isdigit():
            kind, end = TokenKind.NUMBER, _NUMBER.match(text, i).end()
        elif _IDENTIFIER.match(text, i):
            kind, end = TokenKind.IDENTIFIER, _IDENTIFIER.match(text, i).end()
        elif c in _OPERATOR_CHARS:
            end = i + 1
            while (end < n and text[end] in _OPERATOR_CHARS
                   and not text.startswith("//", end) and not text.startswith("/*", end)):
                end += 1
            kind = TokenKind.PUNCTUATION
        else:
            kind, end = TokenKind.PUNCTUATION, i + 1

        token_text = text[i:end]
        tokens.append(Token(kind, token_text, i, line))
        line += _newline_count(token_text)
        i = end

    return tokens


# Declarations

DECLARATION_MODIFIERS = frozenset({
    "private", "fileprivate", "internal", "public", "open",
    "static", "class", "final", "override", "lazy", "weak", "unowned",
    "mutating", "nonmutating", "dynamic", "required", "convenience",
    "nonisolated", "optional", "indirect",
})

# Tokens after which a newline does not end the current construct
_CONTINUATION_TOKENS = frozenset({
    ",", "(", "[", "=", ":", "&&", "||", "??", "->", ".", "in",
    "if", "guard", "while", "case", "for", "catch", "return",
})

_STATEMENT_BOUNDARIES = frozenset({"{", "}", ";"})

# A newline followed by one of these ends a function signature without a body
_SIGNATURE_BREAKS = frozenset({
    "}", "func", "var", "let", "init", "deinit", "subscript", "case",
    "struct", "class", "enum", "extension", "protocol", "typealias",
    "static", "private", "fileprivate", "internal", "public", "open",
    "mutating", "override", "@", "#if", "#endif", "#else",
})


@dataclass(frozen=True)
class Attribute:
    name: str
    start: int
    end: int


@dataclass(frozen=True)
class Modifier:
    name: str
    start: int
    end: int


@dataclass(frozen=True)
class ImportDecl:
    module: str
    start: int
    end: int
    line: int
    attributes: Tuple[Attribute, ...] = ()
    import_kind: Optional[str] = None

    @property
    def root_module(self) -> str:
        return self.module.split(".")[0]


@dataclass(frozen=True)
class VariableDecl:
    """A ``var``/``let`` declaration with a single identifier pattern"""
    name: str
    specifier: str
    specifier_start: int
    start: int
    end: int
    line: int
    attributes: Tuple[Attribute, ...] = ()
    modifiers: Tuple[Modifier, ...] = ()
    type_text: Optional[str] = None
    name_end: int = 0
    type_end: Optional[int] = None
    initializer_end: Optional[int] = None
    has_accessor_block: bool = False
    trailing_comment: Optional[str] = None

    @property
    def attribute_names(self) -> Tuple[str, ...]:
        return tuple(attribute.name for attribute in self.attributes)


@dataclass(frozen=True)
class FunctionDecl:
    name: str
    start: int
    keyword_start: int
    line: int
    modifiers: Tuple[str, ...] = ()
    parameters: Tuple[str, ...] = ()
    return_type: Optional[str] = None
    body_open: Optional[int] = None
    body_close: Optional[int] = None

    @property
    def has_body(self) -> bool:
        return self.body_open is not None and self.body_close is not None

    @property
    def returns_void(self) -> bool:
        return self.return_type is None or self.return_type.replace(" ", "") in ("Void", "()")

    @property
    def end(self) -> int:
        """Offset just past the closing brace of the body"""
        return (self.body_close or self.keyword_start) + 1


@dataclass(frozen=True)
class Statement:
    """One top-level statement of a function body, as a token index range"""
    first: int
    last: int
    start: int
    end: int
    line: int
    keyword: str


@dataclass(frozen=True)
class IfStatement:
    statement: Statement
    condition_start: int
    condition_end: int
    body_open: int
    body_close: int
    has_else: bool


@dataclass
class SourceTree:
    text: str
    tokens: List[Token]
    imports: List[ImportDecl] = field(default_factory=list)
    variables: List[VariableDecl] = field(default_factory=list)
    functions: List[FunctionDecl] = field(default_factory=list)

    def __post_init__(self):
        self._starts = [token.start for token in self.tokens]

    # Offsets and lines

    def token_index_at(self, offset: int) -> int:
        return bisect_right(self._starts, offset) - 1

    def line_start(self, offset: int) -> int:
        return max(self.text.rfind("\n", 0, offset), self.text.rfind("\r", 0, offset)) + 1

    def line_end(self, offset: int) -> int:
        """Offset of the line break ending the line that holds ``offset``"""
        end = offset
        while end < len(self.text) and self.text[end] not in "\r\n":
            end += 1
        return end

    def indentation(self, offset: int) -> str:
        start = self.line_start(offset)
        end = start
        while end < len(self.text) and self.text[end] in " \t":
            end += 1
        return self.text[start:end]

    def starts_line(self, offset: int) -> bool:
        return self.text[self.line_start(offset):offset].strip() == ""

    def ends_line(self, offset: int) -> bool:
        """True when only whitespace or a line comment follows ``offset`` on its line"""
        rest = self.text[offset:self.line_end(offset)].strip()
        return rest == "" or rest.startswith("//")

    def next_significant(self, offset: int) -> Optional[Token]:
        index = max(self.token_index_at(offset), 0)
        for token in self.tokens[index:]:
            if token.start >= offset and not token.is_trivia:
                return token
        return None

    def identifiers(self, exclude: Sequence[Tuple[int, int]] = ()) -> Set[str]:
        """Identifier tokens outside the given offset ranges"""
        names: Set[str] = set()
        for token in self.tokens:
            if token.kind != TokenKind.IDENTIFIER:
                continue
            if any(start <= token.start < end for start, end in exclude):
                continue
            names.add(token.text.strip("`"))
        return names

    # Imports

    def leading_imports(self) -> List[ImportDecl]:
        """Imports forming the contiguous block at the top of the file"""
        leading: List[ImportDecl] = []
        cursor = 0
        for decl in sorted(self.imports, key=lambda d: d.start):
            first = self.next_significant(cursor)
            if first is None or first.start != decl.start:
                break
            leading.append(decl)
            cursor = decl.end
        return leading

    # Function bodies

    def statements(self, function: FunctionDecl) -> List[Statement]:
        if not function.has_body:
            return []
        open_index = self.token_index_at(function.body_open)
        close_index = self.token_index_at(function.body_close)
        return _split_statements(self.tokens, open_index + 1, close_index)

    def statement_text(self, statement: Statement) -> str:
        return self.text[statement.start:statement.end]

    def statement_tokens(self, statement: Statement) -> List[Token]:
        return [t for t in self.tokens[statement.first:statement.last + 1] if not t.is_trivia]

    def as_if_statement(self, statement: Statement) -> Optional[IfStatement]:
        if statement.keyword != "if":
            return None
        tokens = self.statement_tokens(statement)
        depth = 0
        body_open = None
        for position, token in enumerate(tokens[1:], start=1):
            if token.text in ("(", "["):
                depth += 1
            elif token.text in (")", "]"):
                depth -= 1
            elif token.text == "{" and depth == 0:
                body_open = position
                break
        if body_open is None or body_open == 1:
            return None

        depth = 0
        body_close = None
        for position in range(body_open, len(tokens)):
            text = tokens[position].text
            if text == "{":
                depth += 1
            elif text == "}":
                depth -= 1
                if depth == 0:
                    body_close = position
                    break
        if body_close is None:
            return None

        return IfStatement(
            statement=statement,
            condition_start=tokens[1].start,
            condition_end=tokens[body_open - 1].end,
            body_open=tokens[body_open].start,
            body_close=tokens[body_close].start,
            has_else=body_close < len(tokens) - 1,
        )


def _is_continuation(previous: Token, current: Token) -> bool:
    if previous.text in _CONTINUATION_TOKENS:
        return True
    if previous.kind == TokenKind.PUNCTUATION and previous.text not in (")", "]", "}", "!", "?", ">", ";", "@"):
        return True
    if current.kind == TokenKind.PUNCTUATION and (current.text.startswith(".") or current.text in ("&&", "||", "??", "?", ":")):
        return True
    return current.text in ("else", "catch", "where")


def _split_statements(tokens: List[Token], begin: int, end: int) -> List[Statement]:
    statements: List[Statement] = []
    first: Optional[int] = None
    last: Optional[int] = None
    depth = 0
    saw_newline = False

    def close():
        statements.append(Statement(
            first=first,
            last=last,
            start=tokens[first].start,
            end=tokens[last].end,
            line=tokens[first].line,
            keyword=tokens[first].text,
        ))

    for index in range(begin, end):
        token = tokens[index]
        if token.kind == TokenKind.NEWLINE:
            if first is not None and depth == 0:
                saw_newline = True
            continue
        if token.is_trivia:
            continue

        if first is not None and depth == 0 and saw_newline and not _is_continuation(tokens[last], token):
            close()
            first = None

        saw_newline = False
        if first is None:
            first = index
        last = index

        if token.text in ("(", "[", "{"):
            depth += 1
        elif token.text in (")", "]", "}"):
            depth -= 1
        elif token.text == ";" and depth == 0:
            close()
            first = None

    if first is not None:
        close()
    return statements


class _DeclarationScanner:
    """Single forward pass over the significant tokens"""

    def __init__(self, text: str, tokens: List[Token]):
        self.text = text
        self.tokens = tokens
        self.sig = [index for index, token in enumerate(tokens) if not token.is_trivia]
        self.imports: List[ImportDecl] = []
        self.variables: List[VariableDecl] = []
        self.functions: List[FunctionDecl] = []

    def token(self, p: int) -> Optional[Token]:
        if 0 <= p < len(self.sig):
            return self.tokens[self.sig[p]]
        return None

    def newline_before(self, p: int) -> bool:
        """True when a line break separates sig token ``p`` from the one before it"""
        if p <= 0:
            return True
        for index in range(self.sig[p - 1] + 1, self.sig[p]):
            if self.tokens[index].kind == TokenKind.NEWLINE:
                return True
            if self.tokens[index].kind == TokenKind.BLOCK_COMMENT and _newline_count(self.tokens[index].text):
                return True
        return False

    def adjacent(self, p: int) -> bool:
        """True when sig token ``p`` directly follows sig token ``p - 1``"""
        return p > 0 and self.sig[p] == self.sig[p - 1] + 1

    def at_declaration_start(self, p: int) -> bool:
        previous = self.token(p - 1)
        if previous is None or previous.text in _STATEMENT_BOUNDARIES:
            return True
        return self.newline_before(p) and previous.text not in _CONTINUATION_TOKENS

    def skip_balanced(self, p: int) -> int:
        """``p`` is an opening paren; return the position after its match"""
        depth = 0
        while p < len(self.sig):
            text = self.token(p).text
            if text == "(":
                depth += 1
            elif text == ")":
                depth -= 1
                if depth == 0:
                    return p + 1
            p += 1
        return p

    def scan(self):
        attributes: List[Attribute] = []
        modifiers: List[Modifier] = []
        decl_start: Optional[int] = None
        depth = 0
        p = 0

        while p < len(self.sig):
            token = self.token(p)
            following = self.token(p + 1)

            if token.text == "@" and following is not None and following.kind == TokenKind.IDENTIFIER:
                if decl_start is None:
                    decl_start = p
                after = p + 2
                nxt = self.token(after)
                if nxt is not None and nxt.text == "(" and self.adjacent(after):
                    after = self.skip_balanced(after)
                attributes.append(Attribute(following.text, token.start, self.token(after - 1).end))
                p = after
                continue

            if token.kind == TokenKind.IDENTIFIER and token.text in DECLARATION_MODIFIERS and (
                    following is not None and (following.kind == TokenKind.IDENTIFIER or following.text == "(")):
                if decl_start is None:
                    decl_start = p
                after = p + 1
                if following.text == "(" and self.adjacent(p + 1):
                    after = self.skip_balanced(p + 1)
                modifiers.append(Modifier(token.text, token.start, self.token(after - 1).end))
                p = after
                continue

            start_p = decl_start if decl_start is not None else p
            if token.text in ("var", "let") and self.at_declaration_start(start_p):
                self.scan_variable(p, start_p, tuple(attributes), tuple(modifiers))
            elif token.text == "import" and depth == 0 and self.at_declaration_start(start_p):
                self.scan_import(p, start_p, tuple(attributes))
            elif token.text == "func":
                self.scan_function(p, start_p, tuple(m.name for m in modifiers))

            attributes, modifiers, decl_start = [], [], None
            if token.text == "{":
                depth += 1
            elif token.text == "}":
                depth = max(depth - 1, 0)
            p += 1

    def scan_import(self, p: int, start_p: int, attributes: Tuple[Attribute, ...]):
        q = p + 1
        token = self.token(q)
        import_kind = None
        if token is not None and token.text in ("struct", "class", "enum", "protocol", "typealias", "func", "var", "let"):
            import_kind = token.text
            q += 1
            token = self.token(q)
        if token is None or token.kind != TokenKind.IDENTIFIER:
            return

        parts = [token.text]
        last = token
        while True:
            dot, part = self.token(q + 1), self.token(q + 2)
            if dot is None or part is None or dot.text != "." or part.kind != TokenKind.IDENTIFIER:
                break
            parts.append(part.text)
            last = part
            q += 2

        self.imports.append(ImportDecl(
            module=".".join(parts),
            start=self.token(start_p).start,
            end=last.end,
            line=self.token(start_p).line,
            attributes=attributes,
            import_kind=import_kind,
        ))

    def scan_variable(self, p: int, start_p: int,
                      attributes: Tuple[Attribute, ...], modifiers: Tuple[Modifier, ...]):
        specifier = self.token(p)
        name = self.token(p + 1)
        if name is None or name.kind != TokenKind.IDENTIFIER:
            # Tuple and other destructuring patterns are not tracked
            return

        end = name.end
        q = p + 2
        type_text = None
        type_end = None
        initializer_end = None
        has_accessor_block = False

        colon = self.token(q)
        if colon is not None and colon.text == ":":
            type_last, q = self.scan_type(q + 1)
            if type_last is not None:
                type_text = self.text[colon.end:type_last.end].strip()
                type_end = type_last.end
                end = type_end

        token = self.token(q)
        if token is not None and token.text == "=":
            last = self.scan_expression(q + 1)
            if last is not None:
                initializer_end = last.end
                end = initializer_end
        elif token is not None and token.text == "{" and not self.newline_before(q):
            has_accessor_block = True

        trailing_comment = None
        index = self.token_index_after(end)
        while index < len(self.tokens) and self.tokens[index].kind == TokenKind.WHITESPACE:
            index += 1
        if index < len(self.tokens) and self.tokens[index].kind == TokenKind.LINE_COMMENT:
            trailing_comment = self.tokens[index].text

        self.variables.append(VariableDecl(
            name=name.text.strip("`"),
            specifier=specifier.text,
            specifier_start=specifier.start,
            start=self.token(start_p).start,
            end=end,
            line=self.token(start_p).line,
            attributes=attributes,
            modifiers=modifiers,
            type_text=type_text,
            name_end=name.end,
            type_end=type_end,
            initializer_end=initializer_end,
            has_accessor_block=has_accessor_block,
            trailing_comment=trailing_comment,
        ))

    def token_index_after(self, offset: int) -> int:
        """Index of the first token starting at or after ``offset``"""
        low, high = 0, len(self.tokens)
        while low < high:
            mid = (low + high) // 2
            if self.tokens[mid].start < offset:
                low = mid + 1
            else:
                high = mid
        return low

    def scan_type(self, q: int) -> Tuple[Optional[Token], int]:
        """Scan a type annotation starting at ``q``; return its last token and the next position"""
        depth = 0
        angle = 0
        last: Optional[Token] = None
        while q < len(self.sig):
            token = self.token(q)
            if last is not None and depth == 0 and angle <= 0 and self.newline_before(q):
                break
            if depth == 0 and angle <= 0 and token.text in ("=", "{", ",", ";", "}"):
                break
            if token.text in ("(", "["):
                depth += 1
            elif token.text in (")", "]"):
                if depth == 0:
                    break
                depth -= 1
            elif token.kind == TokenKind.PUNCTUATION and token.text != "->":
                angle += token.text.count("<") - token.text.count(">")
            last = token
            q += 1
        return last, q

    def scan_expression(self, q: int) -> Optional[Token]:
        """Scan an initializer expression; return its last token"""
        depth = 0
        last: Optional[Token] = None
        while q < len(self.sig):
            token = self.token(q)
            if last is not None and depth == 0:
                if self.newline_before(q) and not _is_continuation(last, token):
                    break
                if token.text in (";", ","):
                    break
            if token.text in ("(", "[", "{"):
                depth += 1
            elif token.text in (")", "]", "}"):
                if depth == 0:
                    break
                depth -= 1
            last = token
            q += 1
        return last

    def scan_function(self, p: int, start_p: int, modifiers: Tuple[str, ...]):
        keyword = self.token(p)
        name = self.token(p + 1)
        if name is None or name.kind != TokenKind.IDENTIFIER:
            # Operator implementations are not tracked
            return

        q = p + 2
        token = self.token(q)
        if token is not None and token.text.startswith("<"):
            angle = 0
            while q < len(self.sig):
                text = self.token(q).text
                if self.token(q).kind == TokenKind.PUNCTUATION and text != "->":
                    angle += text.count("<") - text.count(">")
                q += 1
                if angle <= 0:
                    break
            token = self.token(q)
        if token is None or token.text != "(":
            return

        after_params = self.skip_balanced(q)
        parameters = self.parameter_names(q + 1, after_params - 1)

        q = after_params
        return_type = None
        body_open = None
        depth = 0
        while q < len(self.sig):
            token = self.token(q)
            if depth == 0 and token.text == "{":
                body_open = q
                break
            if depth == 0 and self.newline_before(q) and token.text in _SIGNATURE_BREAKS:
                break
            if token.text in ("(", "["):
                depth += 1
            elif token.text in (")", "]"):
                depth -= 1
            elif token.text == "->" and depth == 0:
                start = q + 1
                end = start
                while end < len(self.sig) and self.token(end).text not in ("{", "where"):
                    if self.newline_before(end) and self.token(end).text in _SIGNATURE_BREAKS:
                        break
                    end += 1
                if end > start:
                    return_type = self.text[self.token(start).start:self.token(end - 1).end].strip()
                q = end
                continue
            q += 1

        body_close = None
        if body_open is not None:
            depth = 0
            r = body_open
            while r < len(self.sig):
                text = self.token(r).text
                if text == "{":
                    depth += 1
                elif text == "}":
                    depth -= 1
                    if depth == 0:
                        body_close = r
                        break
                r += 1

        self.functions.append(FunctionDecl(
            name=name.text.strip("`"),
            start=self.token(start_p).start,
            keyword_start=keyword.start,
            line=keyword.line,
            modifiers=modifiers,
            parameters=parameters,
            return_type=return_type,
            body_open=self.token(body_open).start if body_open is not None and body_close is not None else None,
            body_close=self.token(body_close).start if body_close is not None else None,
        ))

    def parameter_names(self, begin: int, end: int) -> Tuple[str, ...]:
        """Internal parameter names between sig positions ``begin`` and ``end``"""
        names: List[str] = []
        segment: List[Token] = []
        depth = 0
        for q in range(begin, end + 1):
            token = self.token(q) if q < end else None
            if token is None or (depth == 0 and token.text == ","):
                head: List[str] = []
                for part in segment:
                    if part.text == ":":
                        break
                    if part.kind == TokenKind.IDENTIFIER:
                        head.append(part.text.strip("`"))
                if head:
                    names.append(head[-1] if len(head) <= 2 else head[1])
                segment = []
                continue
            if token.text in ("(", "[", "<"):
                depth += 1
            elif token.text in (")", "]", ">"):
                depth -= 1
            segment.append(token)
        return tuple(name for name in names if name != "_")


# Capability

def parse(text: str) -> SourceTree:
    tokens = tokenize(text)
    scanner = _DeclarationScanner(text, tokens)
    scanner.scan()
    return SourceTree(
        text=text,
        tokens=tokens,
        imports=scanner.imports,
        variables=scanner.variables,
        functions=scanner.functions,
    )


def render(tree: SourceTree) -> str:
    return "".join(token.text for token in tree.tokens)


def _normalize_type(type_text: str) -> str:
    return re.sub(r"\s+", "", type_text)


def locate(tree: SourceTree, identifier: str, type_name: Optional[str] = None) -> List[VariableDecl]:
    """Variable declarations named ``identifier``.

    When ``type_name`` is given, declarations with a different explicit type
    annotation are skipped; declarations without an annotation still match.
    """
    matches = []
    for decl in tree.variables:
        if decl.name != identifier:
            continue
        if type_name and decl.type_text is not None and _normalize_type(decl.type_text) != _normalize_type(type_name):
            continue
        matches.append(decl)
    return matches


def splice(tree: SourceTree, edits: Sequence[Tuple[int, int, str]]) -> SourceTree:
    """Apply non-overlapping ``(start, end, replacement)`` edits and re-parse"""
    text = tree.text
    for start, end, replacement in sorted(edits, key=lambda edit: (edit[0], edit[1]), reverse=True):
        text = text[:start] + replacement + text[end:]
    return parse(text)


def mutate_attributes(tree: SourceTree,
                      decl: VariableDecl,
                      add: Sequence[str] = (),
                      specifier: Optional[str] = None,
                      drop_initializer: bool = False) -> SourceTree:
    """Add attributes to a declaration's prefix.

    New attributes go after the existing ones and before any modifier, so
    ``@MainActor private let x`` becomes ``@MainActor @StateObject private var x``.
    Nothing past the declaration prefix changes unless ``drop_initializer``
    is set, in which case ``= value`` is removed and a trailing comment kept.
    """
    edits: List[Tuple[int, int, str]] = []

    if add:
        anchor = decl.modifiers[0].start if decl.modifiers else decl.specifier_start
        edits.append((anchor, anchor, "".join(f"@{name} " for name in add)))

    if specifier and specifier != decl.specifier:
        edits.append((decl.specifier_start, decl.specifier_start + len(decl.specifier), specifier))

    if drop_initializer and decl.initializer_end is not None:
        keep_until = decl.type_end if decl.type_end is not None else decl.name_end
        edits.append((keep_until, decl.initializer_end, ""))

    return splice(tree, edits)


class SwiftSyntaxCapability:
    """parse / locate / mutate_attributes / render behind one object.

    Transforms of the syntax-tree strategy take this as a collaborator so a
    different parser for the same grammar can be dropped in.
    """

    def parse(self, text: str) -> SourceTree:
        return parse(text)

    def locate(self, tree: SourceTree, identifier: str, type_name: Optional[str] = None) -> List[VariableDecl]:
        return locate(tree, identifier, type_name)

    def mutate_attributes(self, tree: SourceTree, decl: VariableDecl, **changes) -> SourceTree:
        return mutate_attributes(tree, decl, **changes)

    def render(self, tree: SourceTree) -> str:
        return render(tree)
