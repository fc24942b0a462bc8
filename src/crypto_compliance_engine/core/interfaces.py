"""Abstract interfaces (Protocol classes) for the compliance engine.

Defines the contracts between the registry, the evaluators and the rule
matcher using Python's typing.Protocol. Callers depend on these protocols,
never on a concrete evaluator class, so the rule-driven engine and the
built-in heuristics are interchangeable behind the registry.

Protocols defined:
- IFieldPredicate
- IAssetClassifier
- IComplianceEvaluator
"""

from collections.abc import Sequence
from typing import Any, Protocol

from crypto_compliance_engine.core.assets import CryptographicAsset
from crypto_compliance_engine.core.models import (
    AggregateResult,
    AssessmentLevel,
    ComplianceLevel,
    Policy,
)


class IFieldPredicate(Protocol):
    """A compiled single-field test held by a rule."""

    def matches(self, actual: Any) -> bool:
        """Test one asset property value.

        Args:
            actual: The asset's value for the field, or None when unset.

        Returns:
            True if the value satisfies the predicate.
        """
        ...


class IAssetClassifier(Protocol):
    """Strategy that assigns one compliance level to one asset."""

    def __call__(
        self,
        policy: Policy,
        asset: CryptographicAsset,
    ) -> tuple[ComplianceLevel, str]:
        """Classify an asset under ``policy``.

        Args:
            policy: The policy supplying levels (and rules, if any).
            asset: The asset to classify.

        Returns:
            Tuple of (assigned level, explanation message).
        """
        ...


class IComplianceEvaluator(Protocol):
    """Contract every policy evaluator implements.

    Implementations are stateless between calls: ``evaluate`` is a pure
    function of the evaluator's immutable policy and the supplied assets.
    """

    @property
    def policy_id(self) -> str:
        """Identifier the evaluator answers to."""
        ...

    @property
    def name(self) -> str:
        """Human-readable policy name used for discovery."""
        ...

    @property
    def compliance_levels(self) -> list[ComplianceLevel]:
        """All compliance levels the policy can assign."""
        ...

    @property
    def default_compliance_level(self) -> ComplianceLevel:
        """Level assigned when nothing more specific applies."""
        ...

    @property
    def assessment_levels(self) -> list[AssessmentLevel]:
        """Ordered severity catalog used for aggregation."""
        ...

    @property
    def default_assessment_level(self) -> AssessmentLevel:
        """Severity used for empty inventories and unmapped levels."""
        ...

    def evaluate(
        self,
        policy_identifier: str,
        assets: Sequence[CryptographicAsset],
    ) -> AggregateResult:
        """Classify every asset and aggregate the worst severity.

        Args:
            policy_identifier: Identifier the caller asked for.
            assets: Assets to classify, in reporting order.

        Returns:
            AggregateResult with one finding per asset, or an empty result
            with ``error=True`` if ``policy_identifier`` does not name this
            evaluator.
        """
        ...
