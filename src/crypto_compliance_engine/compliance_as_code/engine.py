"""Compliance engine: evaluates asset inventories against a policy.

Architecture:
- ``PolicyEvaluator`` owns one immutable Policy and an asset classifier
  (an ``IAssetClassifier`` strategy). It implements the evaluator contract:
  identifier check, one finding per asset, worst-severity aggregation.
- ``RuleBasedClassifier`` is the classifier for declarative policies: it
  matches the policy's rules against an asset and resolves the winner.
- The built-in heuristics (see ``builtin_policies``) are classifiers too,
  so every policy runs through the same evaluation and aggregation path.

The engine processes an evaluation request by:
1. Checking that the requested identifier names this evaluator
2. Classifying each asset in input order
3. Mapping each finding's level to its assessment level
4. Returning the findings with the worst assessment level
"""

import time
from collections.abc import Sequence

from crypto_compliance_engine.compliance_as_code.resolver import ResolutionStrategy, resolve_level
from crypto_compliance_engine.compliance_as_code.rule_matcher import find_matching_rules
from crypto_compliance_engine.core.assets import CryptographicAsset
from crypto_compliance_engine.core.interfaces import IAssetClassifier
from crypto_compliance_engine.core.models import (
    AggregateResult,
    AssessmentLevel,
    ComplianceLevel,
    EvaluationFinding,
    Policy,
)
from crypto_compliance_engine.observability import get_logger

logger = get_logger(__name__)


def aggregate_assessment(policy: Policy, findings: Sequence[EvaluationFinding]) -> AssessmentLevel:
    """Compute the worst assessment level across findings.

    A compliance level whose assessment id is missing from the policy's
    catalog is a configuration gap: it is logged and counted as the
    policy's default assessment level.

    Args:
        policy: Policy owning the levels and the assessment catalog.
        findings: Findings of one evaluation.

    Returns:
        The assessment level with the highest id, or the policy default when
        there are no findings.
    """
    worst: AssessmentLevel | None = None
    for finding in findings:
        level = finding.compliance_level
        assessment = policy.assessment_level(level.assessment_id)
        if assessment is None:
            logger.warning(
                "Compliance level maps to an undefined assessment level; using policy default",
                policy_id=policy.id,
                level_id=level.id,
                assessment_id=level.assessment_id,
            )
            assessment = policy.default_assessment_level
        if worst is None or assessment.id > worst.id:
            worst = assessment
    return worst if worst is not None else policy.default_assessment_level


class RuleBasedClassifier:
    """Classifies assets with the declarative rules of a policy.

    Args:
        strategy: How several matching rules are resolved into one level.
    """

    def __init__(self, strategy: ResolutionStrategy = ResolutionStrategy.SPECIFICITY) -> None:
        self.strategy = strategy

    def __call__(self, policy: Policy, asset: CryptographicAsset) -> tuple[ComplianceLevel, str]:
        asset_type = asset.asset_type.value
        if asset.properties is None:
            return (
                policy.unknown_level,
                f"The asset is of type '{asset_type}' but carries no {asset_type} properties, "
                "which does not allow matching it against the policy rules",
            )

        matches = find_matching_rules(policy, asset)
        level, message = resolve_level(policy, asset.asset_type, matches, self.strategy)
        logger.debug(
            "Asset classified by rules",
            policy_id=policy.id,
            asset=asset.identifier,
            matched_rules=len(matches),
            level_id=level.id,
        )
        return level, message


class PolicyEvaluator:
    """Evaluator for one policy, implementing IComplianceEvaluator.

    Args:
        policy: The immutable policy this evaluator answers for.
        classifier: Strategy assigning a level to each asset.
    """

    def __init__(self, policy: Policy, classifier: IAssetClassifier) -> None:
        self._policy = policy
        self._classifier = classifier

    @property
    def policy(self) -> Policy:
        return self._policy

    @property
    def classifier(self) -> IAssetClassifier:
        return self._classifier

    @property
    def policy_id(self) -> str:
        return self._policy.id

    @property
    def name(self) -> str:
        return self._policy.name

    @property
    def compliance_levels(self) -> list[ComplianceLevel]:
        return list(self._policy.levels)

    @property
    def default_compliance_level(self) -> ComplianceLevel:
        return self._policy.default_level

    @property
    def assessment_levels(self) -> list[AssessmentLevel]:
        return list(self._policy.assessment_levels)

    @property
    def default_assessment_level(self) -> AssessmentLevel:
        return self._policy.default_assessment_level

    def evaluate(
        self,
        policy_identifier: str,
        assets: Sequence[CryptographicAsset],
    ) -> AggregateResult:
        """Classify every asset and aggregate the worst assessment level.

        Args:
            policy_identifier: Identifier the caller asked for.
            assets: Assets to classify; findings keep this order.

        Returns:
            AggregateResult. When ``policy_identifier`` does not name this
            evaluator the result is empty with ``error=True``.
        """
        if policy_identifier != self._policy.id:
            logger.warning(
                "Policy identifier does not match evaluator",
                requested=policy_identifier,
                evaluator=self._policy.id,
            )
            return AggregateResult(
                assessment_level=self._policy.default_assessment_level,
                findings=[],
                error=True,
            )

        start_time = time.monotonic()
        findings = [self.evaluate_asset(asset) for asset in assets]
        assessment = aggregate_assessment(self._policy, findings)
        duration_ms = (time.monotonic() - start_time) * 1000

        logger.info(
            "Compliance evaluation complete",
            policy_id=self._policy.id,
            asset_count=len(findings),
            assessment_level=assessment.label,
            duration_ms=round(duration_ms, 2),
        )
        return AggregateResult(assessment_level=assessment, findings=findings, error=False)

    def evaluate_asset(self, asset: CryptographicAsset) -> EvaluationFinding:
        """Classify a single asset.

        Args:
            asset: The asset to classify.

        Returns:
            The finding for the asset.
        """
        level, message = self._classifier(self._policy, asset)
        return EvaluationFinding(
            asset_identifier=asset.identifier,
            compliance_level=level,
            message=message,
        )


def create_rule_based_evaluator(
    policy: Policy,
    strategy: ResolutionStrategy = ResolutionStrategy.SPECIFICITY,
) -> PolicyEvaluator:
    """Create an evaluator for a parsed declarative policy.

    Args:
        policy: Policy produced by the policy parser.
        strategy: Resolution strategy for competing rules.

    Returns:
        Configured PolicyEvaluator.
    """
    return PolicyEvaluator(policy, RuleBasedClassifier(strategy))
