"""Policy domain model for the compliance engine.

Policy and everything it holds are frozen dataclasses over tuples, so a
Policy built by the parser (or by a built-in evaluator) can be shared by
concurrent evaluations without locking. Results are plain dataclasses
created per evaluation call.

Models:
- ComplianceIcon: display icon for a compliance level
- ComplianceLevel: an outcome bucket a policy can assign to an asset
- AssessmentLevel: an ordered severity tier (higher id = worse)
- RuleDefinition: one declarative rule with compiled field predicates
- Policy: levels, severities and rules of one named policy
- EvaluationFinding: the level assigned to one asset, with an explanation
- AggregateResult: all findings of one evaluation plus the worst severity
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from crypto_compliance_engine.core.assets import AssetType

if TYPE_CHECKING:
    from crypto_compliance_engine.core.interfaces import IFieldPredicate


class ComplianceIcon(str, Enum):
    CHECKMARK = "CHECKMARK"
    CHECKMARK_SECURE = "CHECKMARK_SECURE"
    WARNING = "WARNING"
    ERROR = "ERROR"
    NOT_APPLICABLE = "NOT_APPLICABLE"
    UNKNOWN = "UNKNOWN"
    TEST = "TEST"


@dataclass(frozen=True)
class AssessmentLevel:
    """An ordered severity tier.

    Attributes:
        id: Position in the ordering; the worst of a set is the highest id.
        label: Human-readable tier name (e.g. "Not Compliant").
    """

    id: int
    label: str


@dataclass(frozen=True)
class ComplianceLevel:
    """An outcome bucket a policy can assign to an asset.

    Attributes:
        id: Unique within the policy. Higher ids are treated as worse when
            several equally specific rules compete.
        label: Short name, e.g. "Acceptable".
        color: Display color (hex or CSS name).
        icon: Display icon.
        assessment_id: Foreign key into the policy's assessment catalog.
        description: Optional longer explanation.
    """

    id: int
    label: str
    color: str
    icon: ComplianceIcon
    assessment_id: int
    description: str | None = None


@dataclass(frozen=True)
class RuleDefinition:
    """One declarative rule of a custom policy.

    Predicates are compiled by the parser from the rule's document fields;
    a field that the document leaves out has no predicate and acts as a
    wildcard.

    Attributes:
        description: Explanation copied into findings produced by this rule.
        level_id: Target compliance level id.
        asset_type: Only assets of this type are tested against the rule.
        predicates: (field name, predicate) pairs for the type-specific fields.
        oid_filter: Predicate on the asset OID, if the rule constrains it.
        name_filter: Predicate on the asset name, if the rule constrains it.
        name: Raw name filter text, kept for logging.
    """

    description: str
    level_id: int
    asset_type: AssetType
    predicates: tuple[tuple[str, "IFieldPredicate"], ...] = ()
    oid_filter: "IFieldPredicate | None" = None
    name_filter: "IFieldPredicate | None" = None
    name: str | None = None

    @property
    def specificity(self) -> int:
        """Number of constrained fields, counting the asset-type marker.

        A collection-valued field counts once however many values it lists.
        """
        score = 1 + len(self.predicates)
        if self.oid_filter is not None:
            score += 1
        if self.name_filter is not None:
            score += 1
        return score


@dataclass(frozen=True)
class Policy:
    """A complete compliance policy.

    Attributes:
        id: Registry identifier.
        name: Human-readable name.
        default_level_id: Level given to assets no rule matches.
        levels: Compliance level catalog, in document order.
        assessment_levels: Severity catalog.
        default_assessment_id: Severity used for empty inventories and for
            levels whose assessment id is not in the catalog.
        rules: Rules in document order. Order does not change outcomes.
    """

    id: str
    name: str
    default_level_id: int
    levels: tuple[ComplianceLevel, ...]
    assessment_levels: tuple[AssessmentLevel, ...]
    default_assessment_id: int
    rules: tuple[RuleDefinition, ...] = ()

    def level(self, level_id: int) -> ComplianceLevel | None:
        return next((lvl for lvl in self.levels if lvl.id == level_id), None)

    def resolve_level(self, level_id: int) -> ComplianceLevel:
        """Return the level with ``level_id``, or the default level."""
        return self.level(level_id) or self.default_level

    @property
    def default_level(self) -> ComplianceLevel:
        level = self.level(self.default_level_id)
        if level is None:
            raise LookupError(
                f"Policy '{self.id}' has no compliance level {self.default_level_id}"
            )
        return level

    @property
    def unknown_level(self) -> ComplianceLevel:
        """The level labelled "Unknown", falling back to the default level."""
        for level in self.levels:
            if level.label.strip().lower() == "unknown":
                return level
        return self.default_level

    def assessment_level(self, assessment_id: int) -> AssessmentLevel | None:
        return next((a for a in self.assessment_levels if a.id == assessment_id), None)

    @property
    def default_assessment_level(self) -> AssessmentLevel:
        level = self.assessment_level(self.default_assessment_id)
        if level is None:
            raise LookupError(
                f"Policy '{self.id}' has no assessment level {self.default_assessment_id}"
            )
        return level

    def rules_for(self, asset_type: AssetType) -> list[RuleDefinition]:
        return [rule for rule in self.rules if rule.asset_type == asset_type]


@dataclass(frozen=True)
class EvaluationFinding:
    """The compliance level assigned to one asset.

    Attributes:
        asset_identifier: The asset's identifier.
        compliance_level: Assigned level.
        message: Why the level was assigned; at least one line.
    """

    asset_identifier: str
    compliance_level: ComplianceLevel
    message: str


@dataclass
class AggregateResult:
    """Outcome of evaluating one inventory against one policy.

    Attributes:
        findings: One finding per asset, in input order.
        error: True when the requested identifier did not match the evaluator.
        assessment_level: Worst severity across all findings.
    """

    assessment_level: AssessmentLevel
    findings: list[EvaluationFinding] = field(default_factory=list)
    error: bool = False
