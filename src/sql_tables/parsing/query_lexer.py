"""Lexer for the SQL dialect understood by sql_tables."""

import ply.lex as lex

from sql_tables.errors import QuerySyntaxError


class QueryLexer:
    """Lexer for tokenizing SQL statements."""

    # Reserved keywords (matched case-insensitively)
    reserved = {
        "create": "CREATE",
        "table": "TABLE",
        "insert": "INSERT",
        "into": "INTO",
        "values": "VALUES",
        "select": "SELECT",
        "from": "FROM",
        "inner": "INNER",
        "join": "JOIN",
        "on": "ON",
        "where": "WHERE",
        "update": "UPDATE",
        "set": "SET",
        "delete": "DELETE",
        "drop": "DROP",
        "and": "AND",
        "or": "OR",
        "like": "LIKE",
        "in": "IN",
        "primary_key": "PRIMARY_KEY",
        "not_empty": "NOT_EMPTY",
        "foreign_key_references": "FOREIGN_KEY_REFERENCES",
    }

    # Token list
    tokens = [
        "IDENTIFIER",
        "NUMBER",
        "STRING",
        "STAR",
        "COMMA",
        "DOT",
        "LPAREN",
        "RPAREN",
        "SEMICOLON",
        "EQ",
        "EQEQ",
        "NEQ",
        "LTGT",
        "LT",
        "LTE",
        "GT",
        "GTE",
    ] + list(reserved.values())

    # Simple tokens (PLY sorts string-defined tokens longest-first)
    t_STAR = r"\*"
    t_COMMA = r","
    t_DOT = r"\."
    t_LPAREN = r"\("
    t_RPAREN = r"\)"
    t_SEMICOLON = r";"
    t_EQEQ = r"=="
    t_EQ = r"="
    t_NEQ = r"!="
    t_LTGT = r"<>"
    t_LTE = r"<="
    t_LT = r"<"
    t_GTE = r">="
    t_GT = r">"

    t_ignore = " \t\r"

    def __init__(self) -> None:
        self.lexer: lex.Lexer = None  # type: ignore

    def t_NUMBER(self, t: lex.LexToken) -> lex.LexToken:
        r"[+-]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?(?![A-Za-z0-9_])"
        # Keep the source text: every value is stored as a string
        return t

    def t_STRING(self, t: lex.LexToken) -> lex.LexToken:
        r"""'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*\""""
        t.value = unquote(t.value)
        return t

    def t_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r"[a-zA-Z_][a-zA-Z0-9_]*"
        # Check if it's a reserved word (case-insensitive)
        t.type = self.reserved.get(t.value.lower(), "IDENTIFIER")
        return t

    def t_NEWLINE(self, t: lex.LexToken) -> None:
        r"\n+"
        t.lexer.lineno += len(t.value)

    def t_COMMENT(self, t: lex.LexToken) -> None:
        r"--[^\n]*"
        pass  # Ignore comments

    def t_error(self, t: lex.LexToken) -> None:
        raise QuerySyntaxError(f"Illegal character '{t.value[0]}'", t.lexpos)

    # --- Lexer methods ---

    def build(self, **kwargs) -> None:  # type: ignore
        """Build the lexer."""
        self.lexer = lex.lex(module=self, **kwargs)

    def input(self, data: str) -> None:
        """Set the input string to tokenize."""
        self.lexer.input(data)

    def token(self) -> lex.LexToken | None:
        """Return the next token."""
        return self.lexer.token()

    def tokenize(self, data: str) -> list[lex.LexToken]:
        """Tokenize the input and return all tokens."""
        self.input(data)
        tokens = []
        while True:
            tok = self.token()
            if tok is None:
                break
            tokens.append(tok)
        return tokens


def unquote(literal: str) -> str:
    """Strip the surrounding quotes of a string literal.

    A backslash-escaped quote of the same kind becomes a literal quote;
    any other backslash sequence is kept as written.
    """
    quote = literal[0]
    return literal[1:-1].replace("\\" + quote, quote)
