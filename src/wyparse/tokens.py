"""Token kinds and token representation for the Whiley lexer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class TokenKind(Enum):
    # Keywords
    ALL = auto()
    ANY = auto()
    ASSERT = auto()
    ASSUME = auto()
    BOOL = auto()
    BREAK = auto()
    BYTE = auto()
    CASE = auto()
    CONTINUE = auto()
    DEBUG = auto()
    DEFAULT = auto()
    DO = auto()
    ELSE = auto()
    ENSURES = auto()
    EXPORT = auto()
    FAIL = auto()
    FALSE = auto()
    FUNCTION = auto()
    IF = auto()
    IMPORT = auto()
    IN = auto()
    INT = auto()
    IS = auto()
    METHOD = auto()
    NATIVE = auto()
    NEW = auto()
    NULL = auto()
    PACKAGE = auto()
    PRIVATE = auto()
    PROPERTY = auto()
    PUBLIC = auto()
    REQUIRES = auto()
    RETURN = auto()
    SKIP = auto()
    SOME = auto()
    SWITCH = auto()
    THIS = auto()
    TRUE = auto()
    VOID = auto()
    WHERE = auto()
    WHILE = auto()

    # Literals
    BYTE_LIT = auto()
    CHAR_LIT = auto()
    INT_LIT = auto()
    STRING_LIT = auto()

    # Operators
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    PERCENT = auto()
    BANG = auto()
    TILDE = auto()
    AMPERSAND = auto()
    LOGICAL_AND = auto()
    BAR = auto()
    LOGICAL_OR = auto()
    CARET = auto()
    LESS = auto()
    LESS_EQUAL = auto()
    SHIFT_LEFT = auto()
    GREATER = auto()
    GREATER_EQUAL = auto()
    SHIFT_RIGHT = auto()
    ASSIGN = auto()
    EQUAL = auto()
    NOT_EQUAL = auto()
    ARROW = auto()
    IMPLIES = auto()
    IFF = auto()
    SUBSET = auto()
    SUBSET_EQUAL = auto()
    SUPERSET = auto()
    SUPERSET_EQUAL = auto()

    # Punctuation
    LPAREN = auto()
    RPAREN = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    LBRACE = auto()
    RBRACE = auto()
    COMMA = auto()
    SEMICOLON = auto()
    COLON = auto()
    COLON_COLON = auto()
    DOT = auto()
    DOT_DOT = auto()
    DOT_DOT_DOT = auto()

    # Whitespace
    NEWLINE = auto()
    INDENT = auto()

    # Comments
    LINE_COMMENT = auto()
    BLOCK_COMMENT = auto()

    # Identifiers
    IDENTIFIER = auto()


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    start: int
    end: int


KEYWORDS: dict[str, TokenKind] = {
    "all": TokenKind.ALL,
    "any": TokenKind.ANY,
    "assert": TokenKind.ASSERT,
    "assume": TokenKind.ASSUME,
    "bool": TokenKind.BOOL,
    "break": TokenKind.BREAK,
    "byte": TokenKind.BYTE,
    "case": TokenKind.CASE,
    "continue": TokenKind.CONTINUE,
    "debug": TokenKind.DEBUG,
    "default": TokenKind.DEFAULT,
    "do": TokenKind.DO,
    "else": TokenKind.ELSE,
    "ensures": TokenKind.ENSURES,
    "export": TokenKind.EXPORT,
    "fail": TokenKind.FAIL,
    "false": TokenKind.FALSE,
    "function": TokenKind.FUNCTION,
    "if": TokenKind.IF,
    "import": TokenKind.IMPORT,
    "in": TokenKind.IN,
    "int": TokenKind.INT,
    "is": TokenKind.IS,
    "method": TokenKind.METHOD,
    "native": TokenKind.NATIVE,
    "new": TokenKind.NEW,
    "null": TokenKind.NULL,
    "package": TokenKind.PACKAGE,
    "private": TokenKind.PRIVATE,
    "property": TokenKind.PROPERTY,
    "public": TokenKind.PUBLIC,
    "requires": TokenKind.REQUIRES,
    "return": TokenKind.RETURN,
    "skip": TokenKind.SKIP,
    "some": TokenKind.SOME,
    "switch": TokenKind.SWITCH,
    "this": TokenKind.THIS,
    "true": TokenKind.TRUE,
    "void": TokenKind.VOID,
    "where": TokenKind.WHERE,
    "while": TokenKind.WHILE,
}

# Longest spellings first so the lexer can match greedily.
OPERATORS: tuple[tuple[str, TokenKind], ...] = (
    ("<==>", TokenKind.IFF),
    ("==>", TokenKind.IMPLIES),
    ("...", TokenKind.DOT_DOT_DOT),
    ("&&", TokenKind.LOGICAL_AND),
    ("||", TokenKind.LOGICAL_OR),
    ("<<", TokenKind.SHIFT_LEFT),
    (">>", TokenKind.SHIFT_RIGHT),
    ("<=", TokenKind.LESS_EQUAL),
    (">=", TokenKind.GREATER_EQUAL),
    ("==", TokenKind.EQUAL),
    ("!=", TokenKind.NOT_EQUAL),
    ("->", TokenKind.ARROW),
    ("::", TokenKind.COLON_COLON),
    ("..", TokenKind.DOT_DOT),
    ("+", TokenKind.PLUS),
    ("-", TokenKind.MINUS),
    ("*", TokenKind.STAR),
    ("/", TokenKind.SLASH),
    ("%", TokenKind.PERCENT),
    ("!", TokenKind.BANG),
    ("~", TokenKind.TILDE),
    ("&", TokenKind.AMPERSAND),
    ("|", TokenKind.BAR),
    ("^", TokenKind.CARET),
    ("<", TokenKind.LESS),
    (">", TokenKind.GREATER),
    ("=", TokenKind.ASSIGN),
    ("(", TokenKind.LPAREN),
    (")", TokenKind.RPAREN),
    ("[", TokenKind.LBRACKET),
    ("]", TokenKind.RBRACKET),
    ("{", TokenKind.LBRACE),
    ("}", TokenKind.RBRACE),
    (",", TokenKind.COMMA),
    (";", TokenKind.SEMICOLON),
    (":", TokenKind.COLON),
    (".", TokenKind.DOT),
    ("⊂", TokenKind.SUBSET),
    ("⊆", TokenKind.SUBSET_EQUAL),
    ("⊃", TokenKind.SUPERSET),
    ("⊇", TokenKind.SUPERSET_EQUAL),
)

# Canonical spelling of each token kind, used in "expecting ..." messages.
SPELLINGS: dict[TokenKind, str] = {
    **{kind: text for text, kind in KEYWORDS.items()},
    **{kind: text for text, kind in OPERATORS},
    TokenKind.BYTE_LIT: "byte literal",
    TokenKind.CHAR_LIT: "character literal",
    TokenKind.INT_LIT: "integer literal",
    TokenKind.STRING_LIT: "string literal",
    TokenKind.NEWLINE: "end-of-line",
    TokenKind.INDENT: "indentation",
    TokenKind.LINE_COMMENT: "comment",
    TokenKind.BLOCK_COMMENT: "comment",
    TokenKind.IDENTIFIER: "identifier",
}

# Tokens skipped when looking for the next token on the current line.
LINE_SPACE: frozenset[TokenKind] = frozenset({
    TokenKind.INDENT,
    TokenKind.LINE_COMMENT,
    TokenKind.BLOCK_COMMENT,
})

WHITESPACE: frozenset[TokenKind] = LINE_SPACE | {TokenKind.NEWLINE}

# Tokens that can begin the operand of a cast written ``(T) e``.
TERM_START: frozenset[TokenKind] = frozenset({
    TokenKind.NULL, TokenKind.TRUE, TokenKind.FALSE, TokenKind.BYTE_LIT,
    TokenKind.CHAR_LIT, TokenKind.INT_LIT, TokenKind.STRING_LIT,
    TokenKind.LBRACKET, TokenKind.LBRACE, TokenKind.LPAREN, TokenKind.BAR,
    TokenKind.BANG, TokenKind.IDENTIFIER,
})
