"""Lexer for type-name strings reported by introspection layers."""

import ply.lex as lex


class DescriptorLexer:
    """Lexer for tokenizing type names such as ``int``, ``[I`` or ``[Ljava.lang.String;``."""

    tokens = [
        "NAME",
        "LBRACKET",
        "RBRACKET",
        "SEMI",
    ]

    t_LBRACKET = r"\["
    t_RBRACKET = r"\]"
    t_SEMI = r";"

    t_ignore = " \t"

    def __init__(self) -> None:
        self.lexer: lex.LexToken = None  # type: ignore

    def t_NAME(self, t: lex.LexToken) -> lex.LexToken:
        r"[A-Za-z_$][A-Za-z0-9_$.]*"
        return t

    def t_error(self, t: lex.LexToken) -> None:
        raise SyntaxError(f"Illegal character '{t.value[0]}' at position {t.lexpos}")

    def build(self, **kwargs) -> None:  # type: ignore
        """Build the lexer."""
        self.lexer = lex.lex(module=self, **kwargs)

    def tokenize(self, data: str) -> list[lex.LexToken]:
        """Return all tokens of ``data``."""
        self.lexer.input(data)
        return list(iter(self.lexer.token, None))
