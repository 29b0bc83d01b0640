"""Keyword tables shared by the lexer, segmenter and walker.

All entries are upper-case.  The lexer only promotes a word to a
``KEYWORD`` token when it appears in :data:`KEYWORDS`; words that are
commonly used as object or column names (``NAME``, ``TYPE``, ``TARGET``,
``SOURCE``, ``STATUS`` ...) are deliberately absent so they survive as
identifiers and can serve as aliases.
"""

from __future__ import annotations

from chunk_engine.models.chunk import StatementType

# fmt: off
KEYWORDS: frozenset[str] = frozenset(
    {
        "ADD", "ALL", "ALTER", "AND", "ANY", "APPLY", "AS", "ASC",
        "AUTHORIZATION", "BACKUP", "BEGIN", "BETWEEN", "BREAK", "BROWSE",
        "BULK", "BY", "CASCADE", "CASE", "CATCH", "CHECK", "CHECKPOINT",
        "CLOSE", "CLUSTERED", "COLLATE", "COLUMN", "COMMIT", "COMPUTE",
        "CONSTRAINT", "CONTINUE", "CREATE", "CROSS", "CURRENT", "CURSOR",
        "DATABASE", "DEALLOCATE", "DECLARE", "DEFAULT", "DELETE", "DENY",
        "DESC", "DISTINCT", "DROP", "ELSE", "END", "ESCAPE", "EXCEPT",
        "EXEC", "EXECUTE", "EXISTS", "EXIT", "FETCH", "FOR", "FOREIGN",
        "FROM", "FULL", "FUNCTION", "GOTO", "GRANT", "GROUP", "HAVING",
        "HOLDLOCK", "IF", "IN", "INDEX", "INNER", "INSERT", "INTERSECT",
        "INTO", "IS", "JOIN", "KEY", "KILL", "LEFT", "LIKE", "MATCHED",
        "MERGE", "NEXT", "NOCHECK", "NONCLUSTERED", "NOT", "NULL", "OF",
        "OFF", "OFFSET", "ON", "ONLY", "OPEN", "OPTION", "OR", "ORDER",
        "OUTER", "OUTPUT", "OVER", "PARTITION", "PERCENT", "PIVOT",
        "PRIMARY", "PRINT", "PROC", "PROCEDURE", "RAISERROR", "REFERENCES",
        "RESTORE", "RETURN", "RETURNS", "REVERT", "REVOKE", "RIGHT",
        "ROLLBACK", "ROW", "ROWS", "SAVE", "SCHEMA", "SELECT", "SET",
        "TABLE", "TABLESAMPLE", "THEN", "THROW", "TO", "TOP", "TRAN",
        "TRANSACTION", "TRIGGER", "TRUNCATE", "TRY", "UNION", "UNIQUE",
        "UNPIVOT", "UPDATE", "USE", "USING", "VALUES", "VIEW", "WAITFOR",
        "WHEN", "WHERE", "WHILE", "WITH", "WITHIN",
    }
)

# ---------------------------------------------------------------------------
# Statement boundaries
# ---------------------------------------------------------------------------

# Keywords that open a new statement when they appear outside parentheses.
STATEMENT_STARTERS: frozenset[str] = frozenset(
    {
        "SELECT", "INSERT", "UPDATE", "DELETE", "MERGE", "WITH", "DECLARE",
        "SET", "EXEC", "EXECUTE", "CREATE", "ALTER", "DROP", "TRUNCATE",
        "GRANT", "REVOKE", "DENY", "USE", "PRINT", "RETURN", "BEGIN", "IF",
        "ELSE", "WHILE", "END", "BREAK", "CONTINUE", "GOTO", "THROW",
        "RAISERROR", "WAITFOR", "OPEN", "CLOSE", "FETCH", "DEALLOCATE",
        "COMMIT", "ROLLBACK", "SAVE",
    }
)

# fmt: on

SET_OPERATORS: frozenset[str] = frozenset({"UNION", "INTERSECT", "EXCEPT"})

# Keywords that may open a parenthesized query (subquery or derived table).
QUERY_OPENERS: frozenset[str] = frozenset({"SELECT", "WITH"})

STATEMENT_TYPES: dict[str, StatementType] = {
    "SELECT": StatementType.SELECT,
    "INSERT": StatementType.INSERT,
    "UPDATE": StatementType.UPDATE,
    "DELETE": StatementType.DELETE,
    "MERGE": StatementType.MERGE,
    "WITH": StatementType.WITH,
    "DECLARE": StatementType.DECLARE,
    "SET": StatementType.SET,
    "EXEC": StatementType.EXEC,
    "EXECUTE": StatementType.EXEC,
    "CREATE": StatementType.CREATE,
    "ALTER": StatementType.ALTER,
    "DROP": StatementType.DROP,
    "TRUNCATE": StatementType.TRUNCATE,
    "GRANT": StatementType.GRANT,
    "REVOKE": StatementType.REVOKE,
    "DENY": StatementType.DENY,
    "BEGIN": StatementType.BEGIN,
    "IF": StatementType.IF,
    "WHILE": StatementType.WHILE,
    "PRINT": StatementType.PRINT,
    "RETURN": StatementType.RETURN,
    "USE": StatementType.USE,
}

# ---------------------------------------------------------------------------
# Table sources
# ---------------------------------------------------------------------------

# Unquoted identifiers that never act as an alias even though the lexer
# does not treat them as keywords.
NON_ALIAS_WORDS: frozenset[str] = frozenset({"GO", "WINDOW", "NOLOCK", "READPAST"})

# DDL object kinds recognized after CREATE / ALTER / DROP.
DDL_OBJECT_TYPES: dict[str, str] = {
    "TABLE": "TABLE",
    "VIEW": "VIEW",
    "PROC": "PROCEDURE",
    "PROCEDURE": "PROCEDURE",
    "FUNCTION": "FUNCTION",
    "TRIGGER": "TRIGGER",
    "INDEX": "INDEX",
    "SCHEMA": "SCHEMA",
    "DATABASE": "DATABASE",
    "TYPE": "TYPE",
    "SYNONYM": "SYNONYM",
    "SEQUENCE": "SEQUENCE",
}

# Top-level clause keywords tracked for clause positions.  Two-word clauses
# are keyed by their first word and completed by the second.
CLAUSE_KEYWORDS: dict[str, str | None] = {
    "SELECT": None,
    "FROM": None,
    "WHERE": None,
    "GROUP": "BY",
    "HAVING": None,
    "ORDER": "BY",
    "SET": None,
    "INTO": None,
    "VALUES": None,
    "ON": None,
    "USING": None,
    "OUTPUT": None,
    "OPTION": None,
}

# Old-style and ``WITH (...)`` table hints.
# fmt: off
TABLE_HINTS: frozenset[str] = frozenset(
    {
        "NOLOCK", "READUNCOMMITTED", "READCOMMITTED", "READCOMMITTEDLOCK",
        "REPEATABLEREAD", "SERIALIZABLE", "SNAPSHOT", "UPDLOCK", "XLOCK",
        "HOLDLOCK", "ROWLOCK", "PAGLOCK", "TABLOCK", "TABLOCKX", "READPAST",
        "NOWAIT", "NOEXPAND", "INDEX", "FORCESEEK", "FORCESCAN", "KEEPIDENTITY",
        "KEEPDEFAULTS", "IGNORE_CONSTRAINTS", "IGNORE_TRIGGERS",
    }
)
# fmt: on
