"""
Data Models
===========

Core data structures for the ChatBI pipeline: the semantic query and its
clauses, schema metadata, conversation turns and execution outcomes.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from chatbi.exceptions import ClauseError

ALLOWED_AGGREGATIONS = frozenset({"SUM", "AVG", "COUNT", "MIN", "MAX"})
SORT_DIRECTIONS = frozenset({"ASC", "DESC"})
LIST_OPERATORS = frozenset({"IN", "NOT IN", "BETWEEN", "NOT BETWEEN"})
NULL_OPERATORS = frozenset({"IS NULL", "IS NOT NULL"})


class VerificationStatus(Enum):
    """Status of a validation check."""

    PASSED = "passed"
    FAILED = "failed"
    WARNED = "warned"


@dataclass
class VerificationResult:
    """Result of a single validation check."""

    verifier_name: str
    status: VerificationStatus
    message: str
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "verifier": self.verifier_name,
            "status": self.status.value,
            "message": self.message,
            "details": self.details,
        }


@dataclass
class LLMResponse:
    """Response from an LLM call."""

    content: str
    model: str
    tokens_used: int = 0


def _require_mapping(data: Any, clause: str) -> Mapping:
    if not isinstance(data, Mapping):
        raise ClauseError(f"{clause} must be an object, got {type(data).__name__}")
    return data


def _text(data: Mapping, *keys: str) -> str:
    """First non-empty value among ``keys``, as a stripped string."""
    for key in keys:
        value = data.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def _freeze(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_freeze(item) for item in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    return value


@dataclass(frozen=True)
class Condition:
    """A WHERE predicate: ``column operator value``."""

    column: str
    operator: str
    value: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "operator", (self.operator or "").strip().upper())
        object.__setattr__(self, "value", _freeze(self.value))

    @classmethod
    def from_dict(cls, data: Any) -> "Condition":
        data = _require_mapping(data, "condition")
        return cls(
            column=_text(data, "column"),
            operator=_text(data, "operator", "op"),
            value=data.get("value"),
        )

    def scalar_value(self) -> Any:
        """
        Value of a single-valued operator such as ``=`` or ``LIKE``.

        A one-element list is unwrapped. Raises ClauseError for any other
        list or mapping.
        """
        value = self.value
        if isinstance(value, tuple) and len(value) == 1:
            value = value[0]
        if isinstance(value, (tuple, dict)):
            raise ClauseError(f"{self.operator} on {self.column} needs a single value, got {_thaw(value)!r}")
        return value

    def to_dict(self) -> dict:
        return {"column": self.column, "operator": self.operator, "value": _thaw(self.value)}


@dataclass(frozen=True)
class Aggregation:
    """An aggregate expression such as ``SUM(orders.amount) AS total``."""

    function: str
    column: str
    alias: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "function", (self.function or "").strip().upper())

    @classmethod
    def from_dict(cls, data: Any) -> "Aggregation":
        data = _require_mapping(data, "aggregation")
        function = _text(data, "function", "func")
        column = _text(data, "column")
        if not function or not column:
            raise ClauseError("aggregation requires 'function' and 'column'")
        return cls(function=function, column=column, alias=_text(data, "alias"))

    @property
    def expression(self) -> str:
        rendered = f"{self.function}({self.column})"
        if self.alias:
            rendered += f" AS {self.alias}"
        return rendered

    def to_dict(self) -> dict:
        return {"function": self.function, "column": self.column, "alias": self.alias}


@dataclass(frozen=True)
class Join:
    """A join onto ``right_table``."""

    kind: str
    left_table: str
    right_table: str
    on_condition: str

    def __post_init__(self) -> None:
        kind = (self.kind or "INNER").strip().upper()
        if kind.endswith(" JOIN"):
            kind = kind[: -len(" JOIN")]
        object.__setattr__(self, "kind", kind or "INNER")

    @classmethod
    def from_dict(cls, data: Any) -> "Join":
        data = _require_mapping(data, "join")
        right_table = _text(data, "table2", "right_table", "table")
        on_condition = _text(data, "condition", "on", "on_condition")
        if not right_table or not on_condition:
            raise ClauseError("join requires a right table and an ON condition")
        return cls(
            kind=_text(data, "type", "kind") or "INNER",
            left_table=_text(data, "table1", "left_table"),
            right_table=right_table,
            on_condition=on_condition,
        )

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "table1": self.left_table,
            "table2": self.right_table,
            "condition": self.on_condition,
        }


@dataclass(frozen=True)
class OrderBy:
    """An ORDER BY entry."""

    column: str
    direction: str = "ASC"

    def __post_init__(self) -> None:
        direction = (self.direction or "ASC").strip().upper()
        if direction not in SORT_DIRECTIONS:
            raise ClauseError(f"unsupported sort direction: {self.direction!r}")
        if not self.column:
            raise ClauseError("order_by requires 'column'")
        object.__setattr__(self, "direction", direction)

    @classmethod
    def from_dict(cls, data: Any) -> "OrderBy":
        if isinstance(data, str):
            parts = data.rsplit(None, 1)
            if len(parts) == 2 and parts[1].upper() in SORT_DIRECTIONS:
                return cls(column=parts[0], direction=parts[1])
            return cls(column=data.strip())
        data = _require_mapping(data, "order_by")
        return cls(column=_text(data, "column"), direction=_text(data, "direction") or "ASC")

    def to_dict(self) -> dict:
        return {"column": self.column, "direction": self.direction}


def _name(entry: Any, clause: str) -> str:
    """Column/table names arrive as strings or as ``{"column": ...}`` objects."""
    if isinstance(entry, Mapping):
        name = _text(entry, "column", "name", "expression", "table")
    elif isinstance(entry, (str, int, float)):
        name = str(entry).strip()
    else:
        name = ""
    if not name:
        raise ClauseError(f"invalid {clause} entry: {entry!r}")
    return name


def _parse_limit(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ClauseError(f"invalid limit: {value!r}")
    try:
        limit = int(value)
    except (TypeError, ValueError) as e:
        raise ClauseError(f"invalid limit: {value!r}") from e
    if limit < 0:
        raise ClauseError(f"limit must be non-negative, got {limit}")
    return limit


_CLAUSE_PARSERS = {
    "tables": lambda entry: _name(entry, "table"),
    "columns": lambda entry: _name(entry, "column"),
    "conditions": Condition.from_dict,
    "aggregations": Aggregation.from_dict,
    "joins": Join.from_dict,
    "order_by": OrderBy.from_dict,
    "group_by": lambda entry: _name(entry, "group_by"),
}


@dataclass(frozen=True)
class SemanticQuery:
    """
    Structured, dialect-neutral description of a query.

    Any sequence field may be empty. A field set to ``None`` is "absent",
    which the SQL generator reports as an error rather than guessing.
    Empty ``tables`` means no query could be derived.
    """

    tables: Optional[tuple] = ()
    columns: Optional[tuple] = ()
    conditions: Optional[tuple] = ()
    aggregations: Optional[tuple] = ()
    joins: Optional[tuple] = ()
    order_by: Optional[tuple] = ()
    group_by: Optional[tuple] = ()
    limit: Optional[int] = None

    def __post_init__(self) -> None:
        for name in _CLAUSE_PARSERS:
            value = getattr(self, name)
            if value is not None and not isinstance(value, tuple):
                object.__setattr__(self, name, tuple(value))

    @classmethod
    def empty(cls) -> "SemanticQuery":
        return cls()

    @classmethod
    def absent(cls) -> "SemanticQuery":
        """A query with every field missing."""
        return cls(
            tables=None,
            columns=None,
            conditions=None,
            aggregations=None,
            joins=None,
            order_by=None,
            group_by=None,
            limit=None,
        )

    @classmethod
    def from_dict(cls, data: Mapping, skipped: Optional[list] = None) -> "SemanticQuery":
        """
        Build a query from the model's JSON object.

        Unknown keys are ignored. Entries that cannot form a valid clause are
        dropped; a description of each is appended to ``skipped`` when given.

        Args:
            data: Parsed JSON object
            skipped: Optional list collecting descriptions of dropped entries

        Returns:
            SemanticQuery with every recognized clause populated
        """
        if skipped is None:
            skipped = []

        fields: dict[str, Any] = {}
        for key, parse in _CLAUSE_PARSERS.items():
            raw = data.get(key)
            if raw is None:
                fields[key] = ()
                continue
            if not isinstance(raw, list):
                raw = [raw]
            parsed = []
            for entry in raw:
                try:
                    parsed.append(parse(entry))
                except ClauseError as e:
                    skipped.append(f"{key}: {e}")
            fields[key] = tuple(parsed)

        try:
            fields["limit"] = _parse_limit(data.get("limit"))
        except ClauseError as e:
            skipped.append(f"limit: {e}")
            fields["limit"] = None

        return cls(**fields)

    def to_dict(self) -> dict:
        def dump(items: Optional[tuple]) -> Optional[list]:
            if items is None:
                return None
            return [item.to_dict() if hasattr(item, "to_dict") else item for item in items]

        return {
            "tables": dump(self.tables),
            "columns": dump(self.columns),
            "conditions": dump(self.conditions),
            "aggregations": dump(self.aggregations),
            "joins": dump(self.joins),
            "order_by": dump(self.order_by),
            "group_by": dump(self.group_by),
            "limit": self.limit,
        }


@dataclass
class ColumnMetadata:
    """A column as seen by the metadata enricher."""

    name: str
    type: str = ""
    comment: str = ""
    samples: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"name": self.name, "type": self.type, "comment": self.comment, "samples": self.samples}


@dataclass
class TableMetadata:
    """Comment, columns and a few sample rows of one table."""

    name: str
    comment: str = ""
    columns: list[ColumnMetadata] = field(default_factory=list)
    sample_rows: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "comment": self.comment,
            "columns": [column.to_dict() for column in self.columns],
            "samples": self.sample_rows,
        }


@dataclass
class MetadataTree:
    """Schema metadata of one connection, keyed by table name."""

    host: str
    database_name: str
    tables: dict[str, TableMetadata] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "db": {"host": self.host, "name": self.database_name},
            "tables": {name: table.to_dict() for name, table in self.tables.items()},
        }


@dataclass
class ExecutionOutcome:
    """Result of running SQL through the execution gateway."""

    success: bool
    rows: list[dict] = field(default_factory=list)
    row_count: int = 0
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> "ExecutionOutcome":
        return cls(success=False, rows=[], row_count=0, error=error)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "data": self.rows,
            "row_count": self.row_count,
            "error": self.error,
        }


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ConversationTurn:
    """One user or assistant message in a conversation."""

    role: str
    text: str
    semantic_query: Optional[SemanticQuery] = None
    generated_sql: Optional[str] = None
    execution_outcome: Optional[ExecutionOutcome] = None
    debug_trace: Optional[dict] = None
    executable: bool = False
    timestamp: datetime = field(default_factory=utcnow)

    USER = "user"
    ASSISTANT = "assistant"

    def to_dict(self) -> dict:
        return {
            "role": self.role,
            "content": self.text,
            "semantic_sql": self.semantic_query.to_dict() if self.semantic_query else None,
            "sql_query": self.generated_sql,
            "execution_result": self.execution_outcome.to_dict() if self.execution_outcome else None,
            "debug": self.debug_trace,
            "executable": self.executable,
            "timestamp": self.timestamp.isoformat(),
        }


class ConversationState(Enum):
    """Lifecycle of a conversation's most recent exchange."""

    NO_TURNS = "no_turns"
    AWAITING_EXECUTION = "awaiting_execution"
    SETTLED = "settled"


@dataclass
class ChatReply:
    """What the orchestrator hands back for one user message."""

    conversation_id: str
    text: str
    semantic_query: Optional[SemanticQuery]
    sql: Optional[str]
    executable: bool = False
    debug_trace: dict = field(default_factory=dict)
