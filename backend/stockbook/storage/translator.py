# Overview: Parses the shared SQL dialect and renders it for the relational and document backends.

"""
Query translation (pure, stateless).

Callers speak one small SQL dialect with `?` placeholders. This module turns
a `(sql, params)` pair into:

- a RelationalQuery: the same SQL for a Postgres-style server, with `?`
  rewritten to `$1..$n`, DATETIME -> TIMESTAMP, date(x) -> DATE_TRUNC, and
  `RETURNING id` appended to INSERTs;
- a DocumentOperation: a collection name plus filter/data/options for a
  document store.

The document path goes through a typed IR (Select | Insert | Update |
Delete). Only single-table statements with at most one `col = value`
equality in WHERE are representable on every backend; anything else raises
UnsupportedQueryError instead of being silently mis-parsed. Multi-table
reads are decomposed by callers (see services/stock_service.py).
"""

from __future__ import annotations

import itertools
import re
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache
from typing import Any, Sequence, Union

from ..time_utils import to_date_text, to_timestamp_text, utcnow
from .errors import PlaceholderMismatchError, TranslationError, UnsupportedQueryError


# Table name -> document collection name
TABLE_COLLECTIONS = {
    "companies": "companies",
    "products": "products",
    "inventory": "inventory",
    "stock_levels": "stock_levels",
    "customers": "customers",
    "suppliers": "suppliers",
    "sales": "sales",
    "sale_items": "sale_items",
    "payments": "payments",
    "staff": "staff",
    "attendance": "attendance",
    "expenses": "expenses",
}


# =============================================================================
# TOKENIZER
# =============================================================================

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
    |(?P<comment>--[^\n]*)
    |(?P<string>'(?:[^']|'')*')
    |(?P<quoted>"(?:[^"]|"")*")
    |(?P<number>\d+(?:\.\d+)?)
    |(?P<param>\?)
    |(?P<numbered>\$\d+)
    |(?P<word>[A-Za-z_][A-Za-z0-9_]*)
    |(?P<op>::|<=|>=|<>|!=|\|\||[-+*/%<>=(),;.])
    """,
    re.VERBOSE,
)


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    pos: int

    @property
    def upper(self) -> str:
        return self.text.upper()

    def is_word(self, *words: str) -> bool:
        return self.kind == "word" and self.upper in words

    def is_op(self, op: str) -> bool:
        return self.kind == "op" and self.text == op


def tokenize(sql: str) -> list[Token]:
    """Lossless tokenization: joining every token's text gives back `sql`."""
    tokens = []
    pos = 0
    while pos < len(sql):
        match = _TOKEN_RE.match(sql, pos)
        if match is None:
            raise TranslationError(f"unexpected character {sql[pos]!r} at offset {pos}")
        tokens.append(Token(match.lastgroup, match.group(), pos))
        pos = match.end()
    return tokens


def count_placeholders(sql: str) -> int:
    return sum(1 for tok in tokenize(sql) if tok.kind == "param")


def flatten_params(params: Sequence[Any]) -> list:
    """Accept `f(a, b, c)` and `f([a, b, c])` interchangeably."""
    if len(params) == 1 and isinstance(params[0], (list, tuple)):
        return list(params[0])
    return list(params)


# =============================================================================
# RELATIONAL RENDERING
# =============================================================================

@dataclass(frozen=True)
class RelationalQuery:
    text: str
    params: tuple

    def to_payload(self, method: str) -> dict:
        return {"method": method, "query": self.text, "params": list(self.params)}


def _matching_paren(tokens: list[Token], open_index: int) -> int:
    depth = 0
    for i in range(open_index, len(tokens)):
        if tokens[i].is_op("("):
            depth += 1
        elif tokens[i].is_op(")"):
            depth -= 1
            if depth == 0:
                return i
    raise TranslationError("unbalanced parentheses")


def _next_significant(tokens: list[Token], index: int) -> int:
    while index < len(tokens) and tokens[index].kind in ("ws", "comment"):
        index += 1
    return index


def _significant(tokens: list[Token]) -> list[int]:
    return [i for i, tok in enumerate(tokens) if tok.kind not in ("ws", "comment")]


def _is_lone_param(tokens: list[Token]) -> bool:
    sig = _significant(tokens)
    return len(sig) == 1 and tokens[sig[0]].kind in ("param", "numbered")


def _render_relational(tokens: list[Token], counter) -> str:
    out = []
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        if tok.kind == "param":
            out.append(f"${next(counter)}")
        elif tok.is_word("DATETIME"):
            out.append("TIMESTAMP")
        elif tok.is_word("DATE"):
            j = _next_significant(tokens, i + 1)
            if j < len(tokens) and tokens[j].is_op("("):
                close = _matching_paren(tokens, j)
                inner = _render_relational(tokens[j + 1:close], counter).strip()
                if _is_lone_param(tokens[j + 1:close]):
                    # date_trunc(unknown) is ambiguous on Postgres
                    inner = f"CAST({inner} AS TIMESTAMP)"
                out.append(f"DATE_TRUNC('day', {inner})")
                i = close + 1
                continue
            out.append(tok.text)
        else:
            out.append(tok.text)
        i += 1
    return "".join(out)


def to_relational(sql: str, params: Sequence[Any] = ()) -> RelationalQuery:
    """
    Rewrite caller SQL for a Postgres-style server.

    Works at token level, so statements outside the shared dialect (JOINs,
    aggregates) still pass through; only placeholders and dialect tokens are
    touched. Raises PlaceholderMismatchError when the `?` count differs from
    len(params).
    """
    tokens = tokenize(sql)
    placeholders = sum(1 for tok in tokens if tok.kind == "param")
    if placeholders != len(params):
        raise PlaceholderMismatchError(placeholders, len(params))

    # Drop trailing whitespace/semicolons
    end = len(tokens)
    while end > 0 and (tokens[end - 1].kind in ("ws", "comment") or tokens[end - 1].is_op(";")):
        end -= 1
    tokens = tokens[:end]

    text = _render_relational(tokens, itertools.count(1)).strip()

    first = _next_significant(tokens, 0)
    is_insert = first < len(tokens) and tokens[first].is_word("INSERT")
    if is_insert and not any(tok.is_word("RETURNING") for tok in tokens):
        text += " RETURNING id"

    return RelationalQuery(text=text, params=tuple(params))


def _split_args(tokens: list[Token]) -> list[list[Token]]:
    args = [[]]
    depth = 0
    for tok in tokens:
        if tok.is_op("("):
            depth += 1
        elif tok.is_op(")"):
            depth -= 1
        elif tok.is_op(",") and depth == 0:
            args.append([])
            continue
        args[-1].append(tok)
    return args


def _unwrap_timestamp_cast(tokens: list[Token]) -> list[Token]:
    """`CAST(x AS TIMESTAMP)` -> `x`; anything else unchanged."""
    sig = _significant(tokens)
    if len(sig) < 6 or not tokens[sig[0]].is_word("CAST") or not tokens[sig[1]].is_op("("):
        return tokens
    if _matching_paren(tokens, sig[1]) != sig[-1]:
        return tokens
    if not (tokens[sig[-3]].is_word("AS") and tokens[sig[-2]].is_word("TIMESTAMP")):
        return tokens
    return tokens[sig[1] + 1:sig[-3]]


def _render_sqlite(tokens: list[Token]) -> str:
    """Map `DATE_TRUNC('day', x)` back to SQLite's `date(x)`."""
    out = []
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        if tok.is_word("DATE_TRUNC"):
            j = _next_significant(tokens, i + 1)
            if j < len(tokens) and tokens[j].is_op("("):
                close = _matching_paren(tokens, j)
                args = _split_args(tokens[j + 1:close])
                unit = _significant(args[0])
                if (
                    len(args) == 2
                    and len(unit) == 1
                    and args[0][unit[0]].text.lower() == "'day'"
                ):
                    inner = _render_sqlite(_unwrap_timestamp_cast(args[1]))
                    out.append(f"date({inner.strip()})")
                    i = close + 1
                    continue
        out.append(tok.text)
        i += 1
    return "".join(out)


def bind_numbered_params(query: str, params: Sequence[Any], dialect: str | None = None) -> tuple[str, dict]:
    """
    Server side: turn `$1..$n` markers into named binds (`:p1..:pn`).

    Lets the relational handler execute Postgres-style SQL through any
    SQLAlchemy dialect. Pass `dialect="sqlite"` to map Postgres-only date
    truncation back to SQLite's `date()`.
    """
    tokens = tokenize(query)
    if dialect == "sqlite":
        tokens = tokenize(_render_sqlite(tokens))

    out = []
    binds = {}
    for tok in tokens:
        if tok.kind == "numbered":
            index = int(tok.text[1:])
            if index < 1 or index > len(params):
                raise PlaceholderMismatchError(index, len(params))
            name = f"p{index}"
            binds[name] = params[index - 1]
            out.append(f":{name}")
        elif tok.kind == "param":
            raise TranslationError("unexpected '?' placeholder in translated query")
        elif tok.kind == "string":
            # text() would read ':30' inside a literal as a bind
            out.append(tok.text.replace(":", "\\:"))
        else:
            out.append(tok.text)
    return "".join(out), binds


# =============================================================================
# TYPED IR
# =============================================================================

@dataclass(frozen=True)
class Param:
    index: int


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Now:
    kind: str  # "timestamp" | "date"


Value = Union[Param, Literal, Now]


@dataclass(frozen=True)
class Where:
    column: str
    value: Value


@dataclass(frozen=True)
class OrderBy:
    column: str
    descending: bool = False


@dataclass(frozen=True)
class Select:
    table: str
    columns: tuple = ()  # empty means '*'
    where: Where | None = None
    order_by: OrderBy | None = None
    limit: int | None = None
    count_alias: str | None = None
    placeholders: int = 0


@dataclass(frozen=True)
class Insert:
    table: str
    columns: tuple
    values: tuple
    placeholders: int = 0


@dataclass(frozen=True)
class Update:
    table: str
    assignments: tuple  # ((column, value), ...)
    where: Where | None = None
    placeholders: int = 0


@dataclass(frozen=True)
class Delete:
    table: str
    where: Where | None = None
    placeholders: int = 0


Statement = Union[Select, Insert, Update, Delete]


class _Parser:
    def __init__(self, sql: str):
        self.sql = sql
        self.tokens = [t for t in tokenize(sql) if t.kind not in ("ws", "comment")]
        self.pos = 0
        self.params = 0

    # -- helpers -----------------------------------------------------------

    def peek(self) -> Token | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def advance(self) -> Token:
        tok = self.peek()
        if tok is None:
            raise UnsupportedQueryError(f"unexpected end of query: {self.sql!r}")
        self.pos += 1
        return tok

    def unsupported(self, tok: Token | None) -> UnsupportedQueryError:
        where = repr(tok.text) if tok is not None else "end of query"
        return UnsupportedQueryError(f"unsupported query shape near {where}: {self.sql.strip()!r}")

    def expect_word(self, *words: str) -> Token:
        tok = self.advance()
        if not tok.is_word(*words):
            raise self.unsupported(tok)
        return tok

    def expect_op(self, op: str) -> Token:
        tok = self.advance()
        if not tok.is_op(op):
            raise self.unsupported(tok)
        return tok

    def accept_word(self, *words: str) -> bool:
        tok = self.peek()
        if tok is not None and tok.is_word(*words):
            self.pos += 1
            return True
        return False

    def accept_op(self, op: str) -> bool:
        tok = self.peek()
        if tok is not None and tok.is_op(op):
            self.pos += 1
            return True
        return False

    def identifier(self) -> str:
        tok = self.advance()
        if tok.kind == "word":
            return tok.text
        if tok.kind == "quoted":
            return tok.text[1:-1].replace('""', '"')
        raise self.unsupported(tok)

    def identifier_list(self) -> tuple:
        names = [self.identifier()]
        while self.accept_op(","):
            names.append(self.identifier())
        return tuple(names)

    def value(self) -> Value:
        tok = self.advance()
        if tok.kind == "param":
            node = Param(self.params)
            self.params += 1
            return node
        if tok.kind == "number":
            return Literal(_number(tok.text))
        if tok.is_op("-"):
            num = self.advance()
            if num.kind != "number":
                raise self.unsupported(num)
            return Literal(-_number(num.text))
        if tok.kind == "string":
            return Literal(tok.text[1:-1].replace("''", "'"))
        if tok.is_word("NULL"):
            return Literal(None)
        if tok.is_word("TRUE", "FALSE"):
            return Literal(tok.upper == "TRUE")
        if tok.is_word("CURRENT_TIMESTAMP"):
            return Now("timestamp")
        if tok.is_word("CURRENT_DATE"):
            return Now("date")
        raise self.unsupported(tok)

    def where(self) -> Where | None:
        if not self.accept_word("WHERE"):
            return None
        column = self.identifier()
        self.expect_op("=")
        node = Where(column, self.value())
        tok = self.peek()
        if tok is not None and tok.is_word("AND", "OR"):
            raise self.unsupported(tok)
        return node

    def finish(self):
        self.accept_op(";")
        tok = self.peek()
        if tok is not None:
            raise self.unsupported(tok)

    # -- statements --------------------------------------------------------

    def statement(self) -> Statement:
        tok = self.peek()
        if tok is None:
            raise UnsupportedQueryError("empty query")
        if tok.is_word("SELECT"):
            node = self.select()
        elif tok.is_word("INSERT"):
            node = self.insert()
        elif tok.is_word("UPDATE"):
            node = self.update()
        elif tok.is_word("DELETE"):
            node = self.delete()
        else:
            raise self.unsupported(tok)
        self.finish()
        return node

    def select(self) -> Select:
        self.expect_word("SELECT")
        columns: tuple = ()
        count_alias = None
        if self.accept_op("*"):
            pass
        elif self.accept_word("COUNT"):
            self.expect_op("(")
            self.expect_op("*")
            self.expect_op(")")
            count_alias = "count"
            if self.accept_word("AS"):
                count_alias = self.identifier()
        else:
            columns = self.identifier_list()
        self.expect_word("FROM")
        table = self.identifier()
        tok = self.peek()
        if tok is not None and (tok.is_op(",") or tok.is_word("JOIN", "INNER", "LEFT", "RIGHT", "CROSS")):
            raise self.unsupported(tok)
        where = self.where()

        order_by = None
        if self.accept_word("ORDER"):
            self.expect_word("BY")
            column = self.identifier()
            descending = False
            if self.accept_word("DESC"):
                descending = True
            else:
                self.accept_word("ASC")
            if self.peek() is not None and self.peek().is_op(","):
                raise self.unsupported(self.peek())
            order_by = OrderBy(column, descending)

        limit = None
        if self.accept_word("LIMIT"):
            tok = self.advance()
            if tok.kind != "number" or "." in tok.text:
                raise self.unsupported(tok)
            limit = int(tok.text)

        return Select(
            table=table,
            columns=columns,
            where=where,
            order_by=order_by,
            limit=limit,
            count_alias=count_alias,
            placeholders=self.params,
        )

    def insert(self) -> Insert:
        self.expect_word("INSERT")
        self.expect_word("INTO")
        table = self.identifier()
        self.expect_op("(")
        columns = self.identifier_list()
        self.expect_op(")")
        self.expect_word("VALUES")
        self.expect_op("(")
        values = [self.value()]
        while self.accept_op(","):
            values.append(self.value())
        self.expect_op(")")
        if len(values) != len(columns):
            raise UnsupportedQueryError(
                f"INSERT has {len(columns)} columns but {len(values)} values: {self.sql.strip()!r}"
            )
        return Insert(table=table, columns=columns, values=tuple(values), placeholders=self.params)

    def update(self) -> Update:
        self.expect_word("UPDATE")
        table = self.identifier()
        self.expect_word("SET")
        assignments = []
        while True:
            column = self.identifier()
            self.expect_op("=")
            value = self.value()
            tok = self.peek()
            if tok is not None and tok.kind == "op" and tok.text not in (",", ";"):
                # e.g. quantity = quantity - ?
                raise self.unsupported(tok)
            assignments.append((column, value))
            if not self.accept_op(","):
                break
        where = self.where()
        return Update(table=table, assignments=tuple(assignments), where=where, placeholders=self.params)

    def delete(self) -> Delete:
        self.expect_word("DELETE")
        self.expect_word("FROM")
        table = self.identifier()
        where = self.where()
        return Delete(table=table, where=where, placeholders=self.params)


def _number(text: str):
    return float(text) if "." in text else int(text)


@lru_cache(maxsize=512)
def parse(sql: str) -> Statement:
    """Parse one statement of the shared dialect into the typed IR."""
    return _Parser(sql).statement()


# =============================================================================
# DOCUMENT RENDERING
# =============================================================================

@dataclass(frozen=True)
class DocumentOperation:
    method: str
    collection: str
    filter: dict = field(default_factory=dict)
    data: dict = field(default_factory=dict)
    options: dict = field(default_factory=dict)
    # COUNT(*) alias; not sent over the wire
    result_alias: str | None = None

    def to_payload(self) -> dict:
        return {
            "method": self.method,
            "collection": self.collection,
            "filter": dict(self.filter),
            "data": dict(self.data),
            "options": dict(self.options),
        }


def collection_for(table: str) -> str:
    return TABLE_COLLECTIONS.get(table.lower(), table.lower())


def to_document(sql: str, params: Sequence[Any] = (), *, now: datetime | None = None) -> DocumentOperation:
    """
    Render a dialect statement as a document-store operation.

    `now` fixes the value of CURRENT_TIMESTAMP / CURRENT_DATE so the output
    is fully determined by the inputs.
    """
    stmt = parse(sql)
    if stmt.placeholders != len(params):
        raise PlaceholderMismatchError(stmt.placeholders, len(params))
    now = now or utcnow()

    def resolve(value: Value):
        if isinstance(value, Param):
            return params[value.index]
        if isinstance(value, Now):
            return to_timestamp_text(now) if value.kind == "timestamp" else to_date_text(now)
        return value.value

    def where_filter(where: Where | None) -> dict:
        return {where.column: resolve(where.value)} if where is not None else {}

    def targets_single(where: Where | None) -> bool:
        return where is not None and where.column == "id"

    collection = collection_for(stmt.table)

    if isinstance(stmt, Select):
        options = {}
        if stmt.order_by is not None:
            options["sort"] = {stmt.order_by.column: -1 if stmt.order_by.descending else 1}
        if stmt.columns:
            options["projection"] = {column: 1 for column in stmt.columns}
        if stmt.limit is not None:
            options["limit"] = stmt.limit
        method = "count" if stmt.count_alias else "find"
        return DocumentOperation(
            method=method,
            collection=collection,
            filter=where_filter(stmt.where),
            options=options,
            result_alias=stmt.count_alias,
        )

    if isinstance(stmt, Insert):
        data = {column: resolve(value) for column, value in zip(stmt.columns, stmt.values)}
        return DocumentOperation(method="insertOne", collection=collection, data=data)

    if isinstance(stmt, Update):
        data = {column: resolve(value) for column, value in stmt.assignments}
        method = "updateOne" if targets_single(stmt.where) else "updateMany"
        return DocumentOperation(
            method=method,
            collection=collection,
            filter=where_filter(stmt.where),
            data=data,
        )

    method = "deleteOne" if targets_single(stmt.where) else "deleteMany"
    return DocumentOperation(method=method, collection=collection, filter=where_filter(stmt.where))
