"""Specificity resolver: picks one compliance level per asset.

When several rules match the same asset, the most specific rule wins: the
one constraining the most fields. Equally specific rules are ordered by
their target level, the higher (worse) level id winning, so ties fail
closed. Rule order in the document only decides between rules that agree
on both specificity and level.

The ``worst_match`` strategy is kept as an alternate mode: it ignores
specificity and takes the worst level across every matching rule, listing
all of their descriptions. The policy default level takes part in that
comparison, so a matching rule can never assign a level better than the
default.
"""

from enum import Enum

from crypto_compliance_engine.compliance_as_code.rule_matcher import RuleMatch
from crypto_compliance_engine.core.assets import AssetType
from crypto_compliance_engine.core.models import ComplianceLevel, Policy


class ResolutionStrategy(str, Enum):
    SPECIFICITY = "specificity"
    WORST_MATCH = "worst_match"


def select_most_specific(matches: list[RuleMatch]) -> RuleMatch | None:
    """Pick the winning match by (specificity, level id), first on full ties.

    Args:
        matches: Matches in rule order.

    Returns:
        The winning match, or None if ``matches`` is empty.
    """
    winner: RuleMatch | None = None
    for candidate in matches:
        if winner is None or (candidate.specificity, candidate.level.id) > (
            winner.specificity,
            winner.level.id,
        ):
            winner = candidate
    return winner


def select_worst(seed: ComplianceLevel, matches: list[RuleMatch]) -> ComplianceLevel:
    """Return the worst of ``seed`` and every matched level.

    Args:
        seed: Starting level, normally the policy default.
        matches: Matches in rule order.

    Returns:
        The level with the highest id; ``seed`` wins ties.
    """
    worst = seed
    for candidate in matches:
        if candidate.level.id > worst.id:
            worst = candidate.level
    return worst


def resolve_level(
    policy: Policy,
    asset_type: AssetType,
    matches: list[RuleMatch],
    strategy: ResolutionStrategy = ResolutionStrategy.SPECIFICITY,
) -> tuple[ComplianceLevel, str]:
    """Turn the matches for one asset into a level and an explanation.

    Args:
        policy: The policy being evaluated.
        asset_type: Type of the asset, used in the no-match message.
        matches: Every rule that matched the asset, in rule order.
        strategy: How competing matches are resolved.

    Returns:
        Tuple of (assigned level, finding message).
    """
    if not matches:
        return (
            policy.default_level,
            f"No compliance rules matched for asset type: {asset_type.value}",
        )

    if strategy is ResolutionStrategy.WORST_MATCH:
        worst = select_worst(policy.default_level, matches)
        message = "\n".join(f"- {match.rule.description}" for match in matches)
        return worst, message

    winner = select_most_specific(matches)
    assert winner is not None
    message = winner.rule.description
    if len(matches) > 1:
        message += (
            f"\nSelected with specificity {winner.specificity} over "
            f"{len(matches) - 1} other matching rule(s)"
        )
    return winner.level, message
