"""Rule matcher: applies a rule's field predicates to one asset.

The field tables below are the single source of truth for which document
fields exist per asset type and what kind of predicate each compiles to.
They are consumed by the policy parser (compilation) and by the matcher
(dispatch to the asset's property bag).
"""

from dataclasses import dataclass

from crypto_compliance_engine.compliance_as_code.predicates import FieldKind, FieldSpec
from crypto_compliance_engine.core.assets import (
    AssetType,
    CertificationLevel,
    CryptoFunction,
    CryptographicAsset,
    ExecutionEnvironment,
    ImplementationPlatform,
    KeyState,
    Mode,
    Padding,
    Primitive,
    ProtocolType,
    RelatedCryptoMaterialType,
)
from crypto_compliance_engine.core.models import ComplianceLevel, Policy, RuleDefinition

_TEXT = FieldSpec(FieldKind.STRING)
_NUMBER = FieldSpec(FieldKind.NUMBER)

ALGORITHM_FIELDS: dict[str, FieldSpec] = {
    "primitive": FieldSpec(FieldKind.ENUM, Primitive),
    "mode": FieldSpec(FieldKind.ENUM, Mode),
    "padding": FieldSpec(FieldKind.ENUM, Padding),
    "curve": _TEXT,
    "parameter_set_identifier": _TEXT,
    "execution_environment": FieldSpec(FieldKind.ENUM, ExecutionEnvironment),
    "implementation_platform": FieldSpec(FieldKind.ENUM, ImplementationPlatform),
    "crypto_functions": FieldSpec(FieldKind.SYMBOL_SET, CryptoFunction),
    "certification_level": FieldSpec(FieldKind.SYMBOL_SET, CertificationLevel),
    "classical_security_level": _NUMBER,
    "nist_quantum_security_level": _NUMBER,
}

CERTIFICATE_FIELDS: dict[str, FieldSpec] = {
    "subject_name": _TEXT,
    "issuer_name": _TEXT,
    "not_valid_before": _TEXT,
    "not_valid_after": _TEXT,
    "signature_algorithm_ref": _TEXT,
    "subject_public_key_ref": _TEXT,
    "certificate_format": _TEXT,
    "certificate_extension": _TEXT,
}

PROTOCOL_FIELDS: dict[str, FieldSpec] = {
    "type": FieldSpec(FieldKind.ENUM, ProtocolType),
    "version": _TEXT,
    "cipher_suites": FieldSpec(FieldKind.NAME_SET),
    "ikev2_transform_types": FieldSpec(FieldKind.TRANSFORMS),
}

RELATED_CRYPTO_MATERIAL_FIELDS: dict[str, FieldSpec] = {
    "type": FieldSpec(FieldKind.ENUM, RelatedCryptoMaterialType),
    "id": _TEXT,
    "state": FieldSpec(FieldKind.ENUM, KeyState),
    "algorithm_ref": _TEXT,
    "creation_date": _TEXT,
    "activation_date": _TEXT,
    "update_date": _TEXT,
    "expiration_date": _TEXT,
    "value": _TEXT,
    "size": _NUMBER,
    "format": _TEXT,
}

FIELDS_BY_ASSET_TYPE: dict[AssetType, dict[str, FieldSpec]] = {
    AssetType.ALGORITHM: ALGORITHM_FIELDS,
    AssetType.CERTIFICATE: CERTIFICATE_FIELDS,
    AssetType.PROTOCOL: PROTOCOL_FIELDS,
    AssetType.RELATED_CRYPTO_MATERIAL: RELATED_CRYPTO_MATERIAL_FIELDS,
}


@dataclass(frozen=True)
class RuleMatch:
    """A rule that matched an asset, with its target level resolved."""

    rule: RuleDefinition
    level: ComplianceLevel

    @property
    def specificity(self) -> int:
        return self.rule.specificity


def rule_matches(rule: RuleDefinition, asset: CryptographicAsset) -> bool:
    """Check whether every constrained field of ``rule`` holds for ``asset``.

    Args:
        rule: The rule to test.
        asset: The asset to test it against.

    Returns:
        False for a different asset type, a missing property bag, or any
        failing predicate; True otherwise.
    """
    if rule.asset_type != asset.asset_type:
        return False
    if rule.oid_filter is not None and not rule.oid_filter.matches(asset.oid):
        return False
    if rule.name_filter is not None and not rule.name_filter.matches(asset.name):
        return False

    properties = asset.properties
    if properties is None:
        return False
    return all(
        predicate.matches(getattr(properties, field_name, None))
        for field_name, predicate in rule.predicates
    )


def find_matching_rules(policy: Policy, asset: CryptographicAsset) -> list[RuleMatch]:
    """Return every rule of ``policy`` that matches ``asset``, in rule order.

    Args:
        policy: Policy whose rules are tested.
        asset: The asset being classified.

    Returns:
        Matches with their target levels resolved; an undefined target level
        resolves to the policy's default level.
    """
    return [
        RuleMatch(rule=rule, level=policy.resolve_level(rule.level_id))
        for rule in policy.rules_for(asset.asset_type)
        if rule_matches(rule, asset)
    ]
