"""Policy parser: declarative policy documents to in-memory Policy objects.

Documents are TOML (the primary format) or YAML with the same structure::

    id = "corporate_pqc"
    name = "Corporate PQC Policy"
    default_level = 3

    [[levels]]
    id = 1
    label = "Acceptable"
    color = "green"
    icon = "checkmark"
    assessment_level = 1          # or: is_uncompliant = false

    [[rule]]
    description = "Short symmetric keys"
    level = 3
    asset_type = "related-crypto-material"
    size = "<128"

Optional top-level ``assessment_levels`` (array of ``id``/``label`` tables)
and ``default_assessment_level`` define the severity catalog. Without them
the catalog is Compliant(1) / Not Compliant(2) and the default severity is
the worst tier.

Parsing is all-or-nothing: any validation error raises PolicyParseError
and no Policy is produced. Rule keys that no asset type defines are errors.
A rule field that belongs to another asset type is logged and ignored, and
a null field value leaves that field unconstrained.
"""

import tomllib
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from crypto_compliance_engine.compliance_as_code.predicates import (
    FieldKind,
    FieldSpec,
    compile_predicate,
)
from crypto_compliance_engine.compliance_as_code.rule_matcher import FIELDS_BY_ASSET_TYPE
from crypto_compliance_engine.core.assets import AssetType
from crypto_compliance_engine.core.models import (
    AssessmentLevel,
    ComplianceIcon,
    ComplianceLevel,
    Policy,
    RuleDefinition,
)
from crypto_compliance_engine.errors import PolicyParseError
from crypto_compliance_engine.observability import get_logger

logger = get_logger(__name__)

# Severity catalog used when a document does not declare assessment_levels
COMPLIANT = AssessmentLevel(id=1, label="Compliant")
NOT_COMPLIANT = AssessmentLevel(id=2, label="Not Compliant")
DEFAULT_ASSESSMENT_LEVELS: tuple[AssessmentLevel, ...] = (COMPLIANT, NOT_COMPLIANT)

SUPPORTED_FORMATS = ("toml", "yaml")

_SUFFIX_FORMATS = {".toml": "toml", ".yaml": "yaml", ".yml": "yaml"}

# OID and name filters are plain text predicates for every asset type
_FILTER_SPEC = FieldSpec(FieldKind.STRING)

# Every rule field defined for any asset type
_KNOWN_FIELDS: frozenset[str] = frozenset(
    key for fields in FIELDS_BY_ASSET_TYPE.values() for key in fields
)


# ---------------------------------------------------------------------------
# Document schemas
# ---------------------------------------------------------------------------


class _LevelDocument(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: int
    label: str
    color: str
    icon: ComplianceIcon
    description: str | None = None
    assessment_level: int | None = None
    is_uncompliant: bool | None = None

    @field_validator("icon", mode="before")
    @classmethod
    def _icon_symbol(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper().replace("-", "_")
        return value

    @model_validator(mode="after")
    def _has_assessment(self) -> "_LevelDocument":
        if self.assessment_level is None and self.is_uncompliant is None:
            raise ValueError("either 'assessment_level' or 'is_uncompliant' is required")
        return self


class _AssessmentDocument(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: int
    label: str


class _RuleHeader(BaseModel):
    """The asset-type independent part of a rule table."""

    model_config = ConfigDict(extra="allow")

    description: str
    level: int
    asset_type: AssetType
    oid: str | None = None
    name: str | None = None


class _PolicyDocument(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    default_level: int
    levels: list[_LevelDocument] = Field(min_length=1)
    rule: list[dict[str, Any]]
    assessment_levels: list[_AssessmentDocument] | None = None
    default_assessment_level: int | None = None


def _validation_error(exc: ValidationError, prefix: str | None = None) -> PolicyParseError:
    first = exc.errors()[0]
    path = ".".join(str(part) for part in first["loc"])
    if prefix:
        path = f"{prefix}.{path}" if path else prefix
    message = "field required" if first["type"] == "missing" else first["msg"]
    return PolicyParseError(message, field=path or None)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def load_document(content: str, fmt: str = "toml") -> dict[str, Any]:
    """Deserialize policy document text into a plain mapping.

    Args:
        content: Document text.
        fmt: ``toml`` or ``yaml``.

    Returns:
        The top-level table.

    Raises:
        PolicyParseError: On syntax errors or a non-table document.
    """
    fmt = fmt.lower()
    if fmt not in SUPPORTED_FORMATS:
        raise PolicyParseError(
            f"Unsupported policy format '{fmt}'. Supported: {list(SUPPORTED_FORMATS)}"
        )

    try:
        data = tomllib.loads(content) if fmt == "toml" else yaml.safe_load(content)
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as exc:
        raise PolicyParseError(f"Invalid {fmt.upper()} document: {exc}") from exc

    if not isinstance(data, dict):
        raise PolicyParseError("Policy document must be a table at the top level")
    return data


def _build_levels(
    document: _PolicyDocument,
) -> tuple[tuple[ComplianceLevel, ...], tuple[AssessmentLevel, ...], int]:
    if document.assessment_levels:
        assessments = tuple(
            AssessmentLevel(id=a.id, label=a.label) for a in document.assessment_levels
        )
    else:
        assessments = DEFAULT_ASSESSMENT_LEVELS

    levels: list[ComplianceLevel] = []
    seen: set[int] = set()
    for index, level in enumerate(document.levels):
        if level.id in seen:
            raise PolicyParseError(f"duplicate compliance level id {level.id}", f"levels.{index}.id")
        seen.add(level.id)

        if level.assessment_level is not None:
            assessment_id = level.assessment_level
        else:
            assessment_id = NOT_COMPLIANT.id if level.is_uncompliant else COMPLIANT.id

        levels.append(
            ComplianceLevel(
                id=level.id,
                label=level.label,
                color=level.color,
                icon=level.icon,
                assessment_id=assessment_id,
                description=level.description,
            )
        )

    if document.default_level not in seen:
        raise PolicyParseError(
            f"references undefined compliance level {document.default_level}", "default_level"
        )

    assessment_ids = {a.id for a in assessments}
    if document.default_assessment_level is None:
        default_assessment_id = max(assessment_ids)
    elif document.default_assessment_level in assessment_ids:
        default_assessment_id = document.default_assessment_level
    else:
        raise PolicyParseError(
            f"references undefined assessment level {document.default_assessment_level}",
            "default_assessment_level",
        )

    return tuple(levels), assessments, default_assessment_id


def _build_rule(index: int, table: dict[str, Any], level_ids: set[int]) -> RuleDefinition:
    prefix = f"rule.{index}"
    try:
        header = _RuleHeader.model_validate(table)
    except ValidationError as exc:
        raise _validation_error(exc, prefix) from exc

    fields = FIELDS_BY_ASSET_TYPE[header.asset_type]
    predicates = []
    for key, raw in (header.model_extra or {}).items():
        if raw is None:
            continue
        spec = fields.get(key)
        if spec is None:
            if key not in _KNOWN_FIELDS:
                raise PolicyParseError(
                    f"unknown field for asset type '{header.asset_type.value}'", f"{prefix}.{key}"
                )
            logger.warning(
                "Rule field does not apply to its asset type; ignoring it",
                rule_index=index,
                field=key,
                asset_type=header.asset_type.value,
            )
            continue
        try:
            predicates.append((key, compile_predicate(spec, raw)))
        except ValueError as exc:
            raise PolicyParseError(str(exc), f"{prefix}.{key}") from exc

    if header.level not in level_ids:
        logger.warning(
            "Rule targets an undefined compliance level; the default level will be used",
            rule_index=index,
            level=header.level,
        )

    return RuleDefinition(
        description=header.description,
        level_id=header.level,
        asset_type=header.asset_type,
        predicates=tuple(predicates),
        oid_filter=compile_predicate(_FILTER_SPEC, header.oid) if header.oid is not None else None,
        name_filter=compile_predicate(_FILTER_SPEC, header.name) if header.name is not None else None,
        name=header.name,
    )


def build_policy(data: dict[str, Any]) -> Policy:
    """Validate a deserialized document and build the Policy.

    Args:
        data: Top-level table of the policy document.

    Returns:
        The immutable Policy.

    Raises:
        PolicyParseError: If the document is incomplete or invalid.
    """
    try:
        document = _PolicyDocument.model_validate(data)
    except ValidationError as exc:
        raise _validation_error(exc) from exc

    levels, assessments, default_assessment_id = _build_levels(document)
    level_ids = {level.id for level in levels}
    rules = tuple(
        _build_rule(index, table, level_ids) for index, table in enumerate(document.rule)
    )

    return Policy(
        id=document.id,
        name=document.name,
        default_level_id=document.default_level,
        levels=levels,
        assessment_levels=assessments,
        default_assessment_id=default_assessment_id,
        rules=rules,
    )


def parse_policy(content: str, fmt: str = "toml") -> Policy:
    """Parse a policy document.

    Args:
        content: Document text.
        fmt: ``toml`` (default) or ``yaml``.

    Returns:
        The parsed Policy.

    Raises:
        PolicyParseError: If the document cannot be parsed or is invalid.
    """
    logger.debug("Parsing policy document", format=fmt, size=len(content))
    try:
        policy = build_policy(load_document(content, fmt))
    except PolicyParseError as exc:
        logger.warning("Policy document rejected", format=fmt, field=exc.field, reason=exc.reason)
        raise

    logger.info(
        "Policy parsed",
        policy_id=policy.id,
        level_count=len(policy.levels),
        rule_count=len(policy.rules),
    )
    return policy


def format_for_path(path: Path) -> str:
    """Infer the document format from a file suffix.

    Raises:
        PolicyParseError: For suffixes other than .toml, .yaml and .yml.
    """
    fmt = _SUFFIX_FORMATS.get(path.suffix.lower())
    if fmt is None:
        raise PolicyParseError(f"Cannot infer policy format from '{path.name}'")
    return fmt


def parse_policy_file(path: Path) -> Policy:
    """Read and parse a policy document from disk.

    Args:
        path: Path to a .toml, .yaml or .yml document.

    Returns:
        The parsed Policy.

    Raises:
        PolicyParseError: If the file is unreadable or invalid.
    """
    fmt = format_for_path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise PolicyParseError(f"Cannot read policy file '{path}': {exc}") from exc
    return parse_policy(content, fmt)
