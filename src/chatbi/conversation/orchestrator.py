"""
Conversation Orchestrator
=========================

Drives one chat turn through enrichment, conversion and SQL generation,
records it in the conversation history, and later folds query execution
outcomes back into that history.
"""

import time
import uuid
from typing import Any, Optional

import structlog
from opentelemetry import trace

from chatbi.connections import ConnectionRegistry, DatabaseConnection
from chatbi.conversation.store import ConversationStore
from chatbi.converter import SemanticConverter
from chatbi.database import DatabaseManager
from chatbi.generator import NO_TABLES_SQL, SQLGenerator, is_generation_error
from chatbi.metadata import MetadataEnricher
from chatbi.models import (
    ChatReply,
    ConversationState,
    ConversationTurn,
    ExecutionOutcome,
    SemanticQuery,
)

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

ERROR_REPLY_PREFIX = "An error occurred while processing the message"


class ConversationOrchestrator:
    """
    Owns the in-process conversation history and runs the NL-to-SQL pipeline.

    The pipeline per turn:
    1. Append the user turn
    2. Build schema metadata for the resolved connection
    3. Convert the question (plus the previous question) to a semantic query
    4. Render SQL
    5. Append the assistant turn with reply text, query, SQL and debug trace
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        enricher: MetadataEnricher,
        converter: SemanticConverter,
        generator: SQLGenerator,
        database: DatabaseManager,
        store: ConversationStore | None = None,
    ) -> None:
        self.registry = registry
        self.enricher = enricher
        self.converter = converter
        self.generator = generator
        self.database = database
        self.store = store or ConversationStore()

    def start_or_continue(
        self,
        conversation_id: Optional[str],
        user_text: str,
        connection_id: Optional[str] = None,
    ) -> ChatReply:
        """
        Process one user message.

        Args:
            conversation_id: Existing conversation, or None to start a new one
            user_text: The user's question
            connection_id: Connection to query, or None for the active one

        Returns:
            ChatReply with reply text, semantic query, SQL and debug trace

        Raises:
            ConnectionNotFoundError: If ``connection_id`` is unknown
        """
        conversation_id = conversation_id or str(uuid.uuid4())
        connection = self.registry.resolve(connection_id)
        started = time.perf_counter()

        with self.store.exclusive(conversation_id):
            previous_user_text = self.store.last_user_text(conversation_id)
            self.store.append(conversation_id, ConversationTurn(role=ConversationTurn.USER, text=user_text))

            with tracer.start_as_current_span("chatbi.turn") as span:
                span.set_attribute("chatbi.conversation_id", conversation_id)
                span.set_attribute("chatbi.connection_id", connection.id)
                try:
                    reply = self._run_pipeline(conversation_id, user_text, connection, previous_user_text)
                except Exception as e:
                    logger.exception("chat_turn_failed", conversation_id=conversation_id)
                    span.set_attribute("error", True)
                    trace_data = self.converter.last_debug_trace()
                    trace_data["error"] = str(e)
                    reply = ChatReply(
                        conversation_id=conversation_id,
                        text=f"{ERROR_REPLY_PREFIX}: {e}",
                        semantic_query=None,
                        sql=None,
                        executable=False,
                        debug_trace=trace_data,
                    )
                span.set_attribute("chatbi.executable", reply.executable)

            self.store.append(
                conversation_id,
                ConversationTurn(
                    role=ConversationTurn.ASSISTANT,
                    text=reply.text,
                    semantic_query=reply.semantic_query,
                    generated_sql=reply.sql,
                    debug_trace=reply.debug_trace,
                    executable=reply.executable,
                ),
            )

        logger.info(
            "chat_turn_completed",
            conversation_id=conversation_id,
            executable=reply.executable,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return reply

    def _run_pipeline(
        self,
        conversation_id: str,
        user_text: str,
        connection: DatabaseConnection,
        previous_user_text: Optional[str],
    ) -> ChatReply:
        with tracer.start_as_current_span("chatbi.enrich"):
            metadata = self.enricher.build_metadata(connection)

        with tracer.start_as_current_span("chatbi.convert"):
            query, debug_trace = self.converter.convert_with_trace(
                user_text,
                connection,
                previous_user_text=previous_user_text,
                metadata=metadata,
            )
            valid = self.converter.validate(query)

        with tracer.start_as_current_span("chatbi.generate"):
            sql = self.generator.generate(query)

        executable = (
            bool(query.tables) and valid and not is_generation_error(sql) and sql != NO_TABLES_SQL
        )
        text = self._compose_reply(query, sql, valid, executable, debug_trace, metadata.database_name)
        return ChatReply(
            conversation_id=conversation_id,
            text=text,
            semantic_query=query,
            sql=sql,
            executable=executable,
            debug_trace=debug_trace,
        )

    def _compose_reply(
        self,
        query: SemanticQuery,
        sql: str,
        valid: bool,
        executable: bool,
        debug_trace: dict[str, Any],
        database_name: str,
    ) -> str:
        if executable:
            return (
                f"Here is the SQL for your question using {', '.join(query.tables)}. "
                "Run it to see the results."
            )
        if not query.tables:
            if debug_trace.get("error"):
                return (
                    f"I could not turn your question into a query ({debug_trace['error']}). "
                    "Please try rephrasing it."
                )
            return (
                f"I could not match your question to the tables of {database_name or 'the database'}. "
                "Please rephrase it or name the data you need."
            )
        if not valid:
            problems = [
                check["message"]
                for check in debug_trace.get("validation", [])
                if check.get("status") == "failed"
            ]
            detail = f" ({'; '.join(problems)})" if problems else ""
            return f"I drafted a query but it is incomplete{detail}. Please refine the question before running it."
        return f"I understood the question but could not build SQL for it: {sql}"

    def run_and_record(
        self,
        conversation_id: Optional[str],
        sql: str,
        connection_id: Optional[str] = None,
    ) -> ExecutionOutcome:
        """
        Execute SQL and fold the outcome into the conversation's last assistant turn.

        Execution errors are returned as a failed outcome, never raised.

        Args:
            conversation_id: Conversation to record into (None to only execute)
            sql: Statement to run
            connection_id: Connection to run on, or None for the active one

        Returns:
            ExecutionOutcome of the statement

        Raises:
            ConnectionNotFoundError: If ``connection_id`` is unknown
        """
        connection = self.registry.resolve(connection_id)

        if not conversation_id:
            return self._execute(sql, connection)

        with self.store.exclusive(conversation_id, create=False) as held:
            outcome = self._execute(sql, connection)
            if not held or self.store.attach_outcome(conversation_id, outcome) is None:
                logger.warning("execution_not_recorded", conversation_id=conversation_id)
        return outcome

    def _execute(self, sql: str, connection: DatabaseConnection) -> ExecutionOutcome:
        with tracer.start_as_current_span("chatbi.execute") as span:
            span.set_attribute("chatbi.connection_id", connection.id)
            try:
                outcome = self.database.execute(sql, connection)
            except Exception as e:
                logger.warning("sql_execution_error", connection_id=connection.id, error=str(e))
                outcome = ExecutionOutcome.failure(str(e))
            span.set_attribute("chatbi.success", outcome.success)
            span.set_attribute("chatbi.row_count", outcome.row_count)
        return outcome

    def history(self, conversation_id: str) -> list[ConversationTurn]:
        return self.store.history(conversation_id)

    def state(self, conversation_id: str) -> ConversationState:
        return self.store.state(conversation_id)

    def clear(self, conversation_id: str) -> None:
        self.store.clear(conversation_id)
        logger.info("conversation_cleared", conversation_id=conversation_id)
