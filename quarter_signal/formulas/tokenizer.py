"""Tokenizer for the quarterly formula language.

Turns a formula string into a flat list of tokens terminated by an EOF token.
The tokenizer never raises: characters it does not understand are skipped.

Example:
    >>> [t.text for t in tokenize('IF(Sales[Q12] >= 10%, "BUY")')]
    ['IF', '(', 'Sales', '[', 'Q12', ']', '>=', '10', '%', ',', 'BUY', ')', '']
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from quarter_signal.functions import FUNCTION_NAMES


class TokenType(Enum):
    FUNCTION = "function"
    IDENTIFIER = "identifier"
    NUMBER = "number"
    STRING = "string"
    OPERATOR = "operator"
    LPAREN = "("
    RPAREN = ")"
    LBRACKET = "["
    RBRACKET = "]"
    LBRACE = "{"
    RBRACE = "}"
    COMMA = ","
    EOF = "eof"


@dataclass(frozen=True)
class Token:
    kind: TokenType
    text: str
    position: int


PUNCTUATION = {
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    ",": TokenType.COMMA,
}

MULTI_CHAR_OPERATORS = (">=", "<=", "<>", "!=")
SINGLE_CHAR_OPERATORS = set("+-*/%><=!")


def _is_ident_start(char: str) -> bool:
    return char.isascii() and (char.isalpha() or char == "_")


def _is_ident_char(char: str) -> bool:
    return char.isascii() and (char.isalnum() or char == "_")


def tokenize(formula: str, function_names: Optional[Iterable[str]] = None) -> List[Token]:
    """Split a formula into tokens.

    Args:
        formula: Formula text (without a leading '=')
        function_names: Names recognised as functions (default: the built-in library)

    Returns:
        List of tokens, always ending with an EOF token
    """
    known = set(function_names) if function_names is not None else FUNCTION_NAMES
    tokens: List[Token] = []
    i = 0
    n = len(formula)

    while i < n:
        char = formula[i]

        if char.isspace():
            i += 1
            continue

        if char in PUNCTUATION:
            tokens.append(Token(PUNCTUATION[char], char, i))
            i += 1
            continue

        two = formula[i:i + 2]
        if two in MULTI_CHAR_OPERATORS:
            tokens.append(Token(TokenType.OPERATOR, two, i))
            i += 2
            continue

        if char in SINGLE_CHAR_OPERATORS:
            tokens.append(Token(TokenType.OPERATOR, char, i))
            i += 1
            continue

        if char in ('"', "'"):
            start = i
            end = formula.find(char, i + 1)
            if end == -1:
                end = n
            tokens.append(Token(TokenType.STRING, formula[i + 1:end], start))
            i = end + 1
            continue

        if char.isdigit() or (char == "." and i + 1 < n and formula[i + 1].isdigit()):
            start = i
            seen_dot = False
            while i < n and (formula[i].isdigit() or (formula[i] == "." and not seen_dot)):
                if formula[i] == ".":
                    seen_dot = True
                i += 1
            tokens.append(Token(TokenType.NUMBER, formula[start:i], start))
            continue

        if _is_ident_start(char):
            start = i
            while i < n and _is_ident_char(formula[i]):
                i += 1
            word = formula[start:i]
            if word.upper() in known:
                tokens.append(Token(TokenType.FUNCTION, word.upper(), start))
            else:
                tokens.append(Token(TokenType.IDENTIFIER, word, start))
            continue

        # Unknown character
        i += 1

    tokens.append(Token(TokenType.EOF, "", n))
    return tokens
