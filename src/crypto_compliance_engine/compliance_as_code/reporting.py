"""Serializable compliance reports.

Turns an AggregateResult into a pydantic ComplianceReport that carries the
policy's level catalogs next to the findings, so a consumer can render the
result without access to the Policy object. ``model_dump(by_alias=True)``
yields camelCase keys.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from crypto_compliance_engine.core.interfaces import IComplianceEvaluator
from crypto_compliance_engine.core.models import AggregateResult


class _ReportModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Report schemas
# ---------------------------------------------------------------------------


class ComplianceLevelEntry(_ReportModel):
    """A compliance level as shown in a report."""

    id: int = Field(description="Level id, unique within the policy")
    label: str = Field(description="Short level name")
    description: str | None = Field(default=None, description="Longer explanation")
    color: str = Field(description="Display color")
    icon: str = Field(description="Display icon symbol")
    assessment_level_id: int = Field(description="Severity tier this level maps to")


class AssessmentLevelEntry(_ReportModel):
    """A severity tier as shown in a report."""

    id: int = Field(description="Tier id; higher is worse")
    label: str = Field(description="Tier name")


class FindingEntry(_ReportModel):
    """The level assigned to one asset."""

    asset_identifier: str = Field(description="Identifier of the evaluated asset")
    level_id: int = Field(description="Assigned compliance level id")
    message: str = Field(description="Why the level was assigned")


class ComplianceReport(_ReportModel):
    """Full result of one policy evaluation."""

    policy_identifier: str = Field(description="Identifier the caller asked for")
    policy_name: str = Field(description="Display name of the evaluating policy")
    findings: list[FindingEntry] = Field(default_factory=list)
    compliance_levels: list[ComplianceLevelEntry] = Field(default_factory=list)
    default_compliance_level_id: int | None = Field(default=None)
    assessment_levels: list[AssessmentLevelEntry] = Field(default_factory=list)
    default_assessment_level_id: int | None = Field(default=None)
    assessment_level: AssessmentLevelEntry | None = Field(
        default=None, description="Worst severity across all findings"
    )
    error: bool = Field(default=False, description="True when the evaluation could not run")

    @classmethod
    def error_report(cls, policy_identifier: str, policy_name: str = "") -> "ComplianceReport":
        """Build an empty report flagged as an error.

        Args:
            policy_identifier: Identifier the caller asked for.
            policy_name: Display name, if known.

        Returns:
            ComplianceReport with no findings and ``error=True``.
        """
        return cls(policy_identifier=policy_identifier, policy_name=policy_name, error=True)


def build_compliance_report(
    evaluator: IComplianceEvaluator,
    policy_identifier: str,
    result: AggregateResult,
) -> ComplianceReport:
    """Combine an evaluation result with its evaluator's catalogs.

    Args:
        evaluator: The evaluator that produced ``result``.
        policy_identifier: Identifier the caller asked for.
        result: Outcome of ``evaluator.evaluate``.

    Returns:
        The report. Error results keep the catalogs but carry no findings.
    """
    levels = [
        ComplianceLevelEntry(
            id=level.id,
            label=level.label,
            description=level.description,
            color=level.color,
            icon=level.icon.value,
            assessment_level_id=level.assessment_id,
        )
        for level in evaluator.compliance_levels
    ]
    assessments = [
        AssessmentLevelEntry(id=a.id, label=a.label) for a in evaluator.assessment_levels
    ]
    findings = [
        FindingEntry(
            asset_identifier=finding.asset_identifier,
            level_id=finding.compliance_level.id,
            message=finding.message,
        )
        for finding in result.findings
    ]

    return ComplianceReport(
        policy_identifier=policy_identifier,
        policy_name=evaluator.name,
        findings=findings,
        compliance_levels=levels,
        default_compliance_level_id=evaluator.default_compliance_level.id,
        assessment_levels=assessments,
        default_assessment_level_id=evaluator.default_assessment_level.id,
        assessment_level=AssessmentLevelEntry(
            id=result.assessment_level.id, label=result.assessment_level.label
        ),
        error=result.error,
    )
