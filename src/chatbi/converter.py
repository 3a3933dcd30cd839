"""
Semantic Converter
==================

Turns a user question into a semantic query by prompting a language model
with the schema digest and parsing the JSON object in its answer.
"""

import json
import re
import threading
import time
from typing import Any, Optional

import structlog

from chatbi.connections import DatabaseConnection
from chatbi.llm.base import LLMInterface
from chatbi.metadata import MetadataEnricher
from chatbi.models import MetadataTree, SemanticQuery
from chatbi.validation import ValidationChain

logger = structlog.get_logger(__name__)

NO_JSON_ERROR = "no JSON object found in model response"
PREVIOUS_INPUT_NOTE = "Previous user input (for reference)"
MAX_TRACE_PROMPT_CHARS = 2000

_OBJECT_START = re.compile(r"\{")


def extract_json_object(text: str) -> Optional[dict]:
    """
    Return the first well-formed JSON object embedded in ``text``.

    The answer may wrap the object in prose or markdown fences; every ``{``
    is tried as a starting point until one decodes to an object.
    """
    decoder = json.JSONDecoder()
    for match in _OBJECT_START.finditer(text or ""):
        try:
            value, _ = decoder.raw_decode(text, match.start())
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value
    return None


class SemanticConverter:
    """
    Converts natural language into a ``SemanticQuery``.

    The converter keeps no shared state. ``last_debug_trace()`` reports the
    most recent conversion made on the calling thread.
    """

    SYSTEM_PROMPT = """You are a data analyst who converts business questions into a
structured description of a SQL query for a MySQL database.

Respond with a single JSON object using exactly these keys:
{
  "tables": ["main_table", "joined_table"],
  "columns": ["table.column", "SUM(table.amount) AS total_amount"],
  "conditions": [{"column": "table.column", "operator": "=", "value": "x"}],
  "aggregations": [{"function": "SUM", "column": "table.amount", "alias": "total_amount"}],
  "joins": [{"type": "LEFT", "table1": "main_table", "table2": "joined_table",
             "condition": "main_table.fk_id = joined_table.id"}],
  "order_by": [{"column": "total_amount", "direction": "DESC"}],
  "group_by": ["table.column"],
  "limit": 100
}

Rules:
- Use only tables and columns from the schema below, qualified as table.column
- The first entry of "tables" is the FROM table
- Supported operators: =, !=, >, >=, <, <=, LIKE, IN, NOT IN, BETWEEN, IS NULL, IS NOT NULL
- IN takes a list of values, BETWEEN takes a two-element list [low, high]
- Aggregation functions: SUM, AVG, COUNT, MIN, MAX
- If the question cannot be answered from the schema, return {"tables": []}"""

    PROMPT_TEMPLATE = """Database schema:
{schema}

{context}Question: {question}

JSON:"""

    def __init__(
        self,
        llm: LLMInterface,
        enricher: MetadataEnricher,
        validation_chain: ValidationChain | None = None,
    ) -> None:
        """
        Initialize the converter.

        Args:
            llm: Language model used for conversion
            enricher: Metadata enricher providing the schema digest
            validation_chain: Checks applied to parsed queries (defaults to standard chain)
        """
        self.llm = llm
        self.enricher = enricher
        self.validation_chain = validation_chain or ValidationChain()
        self._local = threading.local()

    def build_prompt(
        self, user_text: str, schema_summary: str, previous_user_text: Optional[str] = None
    ) -> str:
        context = ""
        if previous_user_text:
            context = f"{PREVIOUS_INPUT_NOTE}: {previous_user_text}\n\n"
        return self.PROMPT_TEMPLATE.format(
            schema=schema_summary,
            context=context,
            question=user_text,
        )

    def convert(
        self,
        user_text: str,
        connection: Optional[DatabaseConnection] = None,
        previous_user_text: Optional[str] = None,
    ) -> SemanticQuery:
        """
        Convert a question into a semantic query.

        Never raises. Model failures and unparseable answers yield an empty
        query, with the reason recorded in ``last_debug_trace()``.

        Args:
            user_text: The user's question
            connection: Connection to ground the prompt on (active when None)
            previous_user_text: Previous question of the same conversation

        Returns:
            SemanticQuery parsed from the model answer, or an empty query
        """
        query, _ = self.convert_with_trace(user_text, connection, previous_user_text)
        return query

    def convert_with_trace(
        self,
        user_text: str,
        connection: Optional[DatabaseConnection] = None,
        previous_user_text: Optional[str] = None,
        metadata: Optional[MetadataTree] = None,
    ) -> tuple[SemanticQuery, dict[str, Any]]:
        """Like ``convert`` but also returns the debug trace of this call."""
        started = time.perf_counter()
        trace: dict[str, Any] = {"provider": self.llm.name}
        self._local.trace = trace

        try:
            query = self._convert(user_text, connection, previous_user_text, metadata, trace)
        except Exception as e:
            logger.warning("semantic_conversion_failed", error=str(e), provider=self.llm.name)
            trace["error"] = str(e)
            query = SemanticQuery.empty()

        trace["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
        return query, trace

    def _convert(
        self,
        user_text: str,
        connection: Optional[DatabaseConnection],
        previous_user_text: Optional[str],
        metadata: Optional[MetadataTree],
        trace: dict[str, Any],
    ) -> SemanticQuery:
        if metadata is None:
            metadata = self.enricher.build_metadata(connection)
        summary = self.enricher.summarize_for_prompt(metadata)

        prompt = self.build_prompt(user_text, summary, previous_user_text)
        trace["prompt"] = prompt[:MAX_TRACE_PROMPT_CHARS]

        response = self.llm.generate(prompt, system_prompt=self.SYSTEM_PROMPT)
        trace["raw_response"] = response.content
        trace["model"] = response.model

        data = extract_json_object(response.content)
        if data is None:
            logger.info("semantic_json_missing", model=response.model)
            trace["error"] = NO_JSON_ERROR
            return SemanticQuery.empty()

        skipped: list[str] = []
        query = SemanticQuery.from_dict(data, skipped)
        trace["parsed"] = query.to_dict()
        if skipped:
            trace["skipped_clauses"] = skipped

        valid, results = self.validation_chain.run(query, metadata)
        trace["valid"] = valid
        trace["validation"] = [result.to_dict() for result in results]
        return query

    def last_debug_trace(self) -> dict[str, Any]:
        """Debug trace of the most recent ``convert`` call on this thread."""
        return dict(getattr(self._local, "trace", {}))

    def validate(self, query: SemanticQuery) -> bool:
        """True iff every condition is complete and every aggregation is supported."""
        valid, _ = self.validation_chain.run(query)
        return valid
