"""
Semantic Query Validation
=========================

Structural checks run on a semantic query before it is rendered.
"""

from abc import ABC, abstractmethod
from typing import Optional

from chatbi.exceptions import ClauseError
from chatbi.models import (
    ALLOWED_AGGREGATIONS,
    LIST_OPERATORS,
    NULL_OPERATORS,
    MetadataTree,
    SemanticQuery,
    VerificationResult,
    VerificationStatus,
)


class SemanticCheck(ABC):
    """Base class for all semantic query checks."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name for this check."""
        pass

    @abstractmethod
    def verify(self, query: SemanticQuery, metadata: Optional[MetadataTree] = None) -> VerificationResult:
        """
        Check the query against this check's rules.

        Args:
            query: Semantic query to check
            metadata: Schema metadata of the target connection, if known

        Returns:
            VerificationResult indicating pass/fail with details
        """
        pass

    def _passed(self, message: str) -> VerificationResult:
        return VerificationResult(
            verifier_name=self.name,
            status=VerificationStatus.PASSED,
            message=message,
        )


class ConditionCheck(SemanticCheck):
    """
    Every condition needs a column, an operator and a value (except IS NULL tests).

    Single-valued operators such as ``=`` or ``LIKE`` reject lists of more
    than one value.
    """

    @property
    def name(self) -> str:
        return "ConditionCheck"

    def verify(self, query: SemanticQuery, metadata: Optional[MetadataTree] = None) -> VerificationResult:
        problems = []
        for index, condition in enumerate(query.conditions or ()):
            missing = [
                label
                for label, present in (
                    ("column", bool(condition.column)),
                    ("operator", bool(condition.operator)),
                    ("value", condition.value is not None or condition.operator in NULL_OPERATORS),
                )
                if not present
            ]
            if missing:
                problems.append(f"condition {index} is missing {', '.join(missing)}")
            elif condition.operator not in LIST_OPERATORS and condition.operator not in NULL_OPERATORS:
                try:
                    condition.scalar_value()
                except ClauseError as e:
                    problems.append(f"condition {index}: {e}")

        if problems:
            return VerificationResult(
                verifier_name=self.name,
                status=VerificationStatus.FAILED,
                message=f"Invalid conditions: {'; '.join(problems)}",
                details={"problems": problems},
            )
        return self._passed("All conditions are complete")


class AggregationCheck(SemanticCheck):
    """Aggregations may only use SUM, AVG, COUNT, MIN or MAX."""

    @property
    def name(self) -> str:
        return "AggregationCheck"

    def verify(self, query: SemanticQuery, metadata: Optional[MetadataTree] = None) -> VerificationResult:
        invalid = [
            aggregation.function
            for aggregation in query.aggregations or ()
            if aggregation.function not in ALLOWED_AGGREGATIONS
        ]
        if invalid:
            return VerificationResult(
                verifier_name=self.name,
                status=VerificationStatus.FAILED,
                message=f"Unsupported aggregation function(s): {', '.join(invalid)}",
                details={"invalid": invalid, "allowed": sorted(ALLOWED_AGGREGATIONS)},
            )
        return self._passed("All aggregation functions are supported")


class SchemaCheck(SemanticCheck):
    """
    Advisory check of table names against the connection's metadata.

    Unknown tables produce a warning, never a failure.
    """

    @property
    def name(self) -> str:
        return "SchemaCheck"

    def verify(self, query: SemanticQuery, metadata: Optional[MetadataTree] = None) -> VerificationResult:
        if metadata is None or not metadata.tables:
            return self._passed("No metadata available, schema not checked")

        known = {name.lower() for name in metadata.tables}
        referenced = list(query.tables or ()) + [join.right_table for join in query.joins or ()]
        unknown = [name for name in referenced if name.lower() not in known]
        if unknown:
            return VerificationResult(
                verifier_name=self.name,
                status=VerificationStatus.WARNED,
                message=f"Tables not found in metadata: {', '.join(unknown)}",
                details={"unknown_tables": unknown, "available_tables": sorted(metadata.tables)},
            )
        return self._passed("All referenced tables exist")


class ValidationChain:
    """Runs all checks in sequence, collecting results."""

    def __init__(self, checks: list[SemanticCheck] | None = None) -> None:
        """
        Initialize the chain.

        Args:
            checks: Checks to run. Defaults to condition, aggregation and schema checks.
        """
        if checks is not None:
            self.checks = checks
        else:
            self.checks = [ConditionCheck(), AggregationCheck(), SchemaCheck()]

    def run(
        self, query: SemanticQuery, metadata: Optional[MetadataTree] = None
    ) -> tuple[bool, list[VerificationResult]]:
        """
        Run every check. Returns (valid, results).

        Does not stop at the first failure. Warnings do not make a query invalid.
        """
        results = [check.verify(query, metadata) for check in self.checks]
        valid = all(result.status != VerificationStatus.FAILED for result in results)
        return valid, results


def validate(query: SemanticQuery) -> bool:
    """True iff the query has no structural problems."""
    valid, _ = ValidationChain().run(query)
    return valid
