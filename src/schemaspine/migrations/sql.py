"""Splitting migration scripts into single statements.

Drivers execute one statement per call (``sqlite3`` refuses more, and
``executescript`` commits on its own), so a ``.sql`` migration body is
split on top-level ``;`` before it runs.

The splitter understands enough SQL lexing to keep these intact:

- single-quoted strings (``'a;b'``, with ``''`` escapes)
- double-quoted identifiers
- ``--`` line comments and ``/* */`` block comments
- PostgreSQL dollar-quoted bodies (``$$ ... $$``, ``$fn$ ... $fn$``)
- SQLite trigger bodies (``CREATE TRIGGER ... BEGIN ...; END;``)

Comments are dropped from the output; statements are stripped.
"""

from __future__ import annotations

import re

_DOLLAR_TAG = re.compile(r"\$[A-Za-z_][A-Za-z0-9_]*\$|\$\$")
_TRIGGER_START = re.compile(r"^\s*CREATE\s+(TEMP\s+|TEMPORARY\s+)?TRIGGER\b", re.IGNORECASE)
_WORD = re.compile(r"[A-Za-z_]+")


def split_sql(sql: str) -> list[str]:
    """Split a SQL script into individual statements.

    Example::

        >>> split_sql("CREATE TABLE a (x TEXT DEFAULT ';'); -- note\\nDROP TABLE b;")
        ["CREATE TABLE a (x TEXT DEFAULT ';')", 'DROP TABLE b']
    """
    statements: list[str] = []
    current: list[str] = []
    i, n = 0, len(sql)
    # Depth of BEGIN ... END inside a CREATE TRIGGER statement
    block_depth = 0

    def flush() -> None:
        stmt = "".join(current).strip()
        if stmt:
            statements.append(stmt)
        current.clear()

    while i < n:
        ch = sql[i]

        if ch == "-" and sql.startswith("--", i):
            end = sql.find("\n", i)
            i = n if end == -1 else end
            continue

        if ch == "/" and sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            i = n if end == -1 else end + 2
            current.append(" ")
            continue

        if ch in ("'", '"'):
            j = i + 1
            while j < n:
                if sql[j] == ch:
                    if j + 1 < n and sql[j + 1] == ch:
                        j += 2
                        continue
                    break
                j += 1
            current.append(sql[i : j + 1])
            i = j + 1
            continue

        if ch == "$":
            m = _DOLLAR_TAG.match(sql, i)
            if m:
                tag = m.group(0)
                end = sql.find(tag, m.end())
                j = n if end == -1 else end + len(tag)
                current.append(sql[i:j])
                i = j
                continue

        if ch.isalpha() or ch == "_":
            m = _WORD.match(sql, i)
            word = m.group(0)
            upper = word.upper()
            if upper in ("BEGIN", "CASE") and _TRIGGER_START.match("".join(current)):
                block_depth += 1
            elif upper == "END" and block_depth:
                block_depth -= 1
            current.append(word)
            i = m.end()
            continue

        if ch == ";" and not block_depth:
            flush()
            i += 1
            continue

        current.append(ch)
        i += 1

    flush()
    return statements


__all__ = ["split_sql"]
