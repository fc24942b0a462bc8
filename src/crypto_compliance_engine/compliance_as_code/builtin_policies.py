"""Built-in policies with fixed, non-declarative heuristics.

Two policies ship with the engine and cannot be removed from the registry:

- ``quantum_safe``: classifies asymmetric algorithms as quantum safe or not,
  using the NIST quantum security level, then an OID whitelist, then a
  whitelist of post-quantum algorithm family names.
- ``nist_sp_800_131_ar3``: a fixed, top-to-bottom rule list inspired by
  NIST SP 800-131A Rev. 3 (hash deprecations, TDEA, block cipher modes).

Both are plain classifier functions over a hardcoded Policy catalog and run
through the same PolicyEvaluator as declarative policies.
"""

from crypto_compliance_engine.compliance_as_code.engine import PolicyEvaluator
from crypto_compliance_engine.compliance_as_code.policy_parser import (
    COMPLIANT,
    DEFAULT_ASSESSMENT_LEVELS,
    NOT_COMPLIANT,
)
from crypto_compliance_engine.core.assets import CryptographicAsset, Primitive
from crypto_compliance_engine.core.models import ComplianceIcon, ComplianceLevel, Policy

QUANTUM_SAFE_POLICY_ID = "quantum_safe"
NIST_SP_800_131A_R3_POLICY_ID = "nist_sp_800_131_ar3"

BUILTIN_POLICY_IDS: frozenset[str] = frozenset(
    {QUANTUM_SAFE_POLICY_ID, NIST_SP_800_131A_R3_POLICY_ID}
)


# ---------------------------------------------------------------------------
# Quantum safety
# ---------------------------------------------------------------------------

ASYMMETRIC_PRIMITIVES: frozenset[Primitive] = frozenset(
    {Primitive.SIGNATURE, Primitive.KEY_AGREE, Primitive.KEM, Primitive.PKE}
)
UNKNOWN_PRIMITIVES: frozenset[Primitive] = frozenset({Primitive.UNKNOWN, Primitive.OTHER})

# Checked as case-insensitive substrings of the asset name, in this order
QUANTUM_SAFE_NAMES: tuple[str, ...] = (
    "ml-kem",
    "ml-dsa",
    "slh-dsa",
    "pqxdh",
    "bike",
    "mceliece",
    "frodokem",
    "hqc",
    "kyber",
    "ntru",
    "crystals",
    "falcon",
    "mayo",
    "sphincs",
    "xmss",
    "lms",
)

QUANTUM_SAFE_OIDS: frozenset[str] = frozenset(
    {
        "1.3.6.1.4.1.2.267.12.4.4",
        "1.3.6.1.4.1.2.267.12.6.5",
        "1.3.6.1.4.1.2.267.12.8.7",
        "1.3.9999.6.4.16",
        "1.3.9999.6.7.16",
        "1.3.9999.6.4.13",
        "1.3.9999.6.7.13",
        "1.3.9999.6.5.12",
        "1.3.9999.6.8.12",
        "1.3.9999.6.5.10",
        "1.3.9999.6.8.10",
        "1.3.9999.6.6.12",
        "1.3.9999.6.9.12",
        "1.3.9999.6.6.10",
        "1.3.9999.6.9.10",
        "1.3.6.1.4.1.22554.5.6.1",
        "1.3.6.1.4.1.22554.5.6.2",
        "1.3.6.1.4.1.22554.5.6.3",
    }
)

NOT_QUANTUM_SAFE = ComplianceLevel(
    id=1,
    label="Not Quantum Safe",
    color="#fac532",
    icon=ComplianceIcon.WARNING,
    assessment_id=NOT_COMPLIANT.id,
)
QS_UNKNOWN = ComplianceLevel(
    id=2,
    label="Unknown",
    description="Unknown Compliance",
    color="#17a9d1",
    icon=ComplianceIcon.UNKNOWN,
    assessment_id=NOT_COMPLIANT.id,
)
QUANTUM_SAFE = ComplianceLevel(
    id=3,
    label="Quantum Safe",
    color="green",
    icon=ComplianceIcon.CHECKMARK_SECURE,
    assessment_id=COMPLIANT.id,
)
QS_NOT_APPLICABLE = ComplianceLevel(
    id=4,
    label="Not Applicable",
    description="Not Applicable: we only categorize asymmetric algorithms",
    color="gray",
    icon=ComplianceIcon.NOT_APPLICABLE,
    assessment_id=COMPLIANT.id,
)

QUANTUM_SAFE_POLICY = Policy(
    id=QUANTUM_SAFE_POLICY_ID,
    name="Basic Quantum Safe Compliance",
    default_level_id=QS_UNKNOWN.id,
    levels=(NOT_QUANTUM_SAFE, QS_UNKNOWN, QUANTUM_SAFE, QS_NOT_APPLICABLE),
    assessment_levels=DEFAULT_ASSESSMENT_LEVELS,
    default_assessment_id=NOT_COMPLIANT.id,
)


def classify_quantum_safety(
    policy: Policy,
    asset: CryptographicAsset,
) -> tuple[ComplianceLevel, str]:
    """Classify one asset for quantum safety.

    Only asymmetric primitives are assessed. Symmetric primitives are Not
    Applicable; assets without algorithm properties or primitive are Unknown.

    Args:
        policy: The quantum-safe policy (unused; levels are module constants).
        asset: The asset to classify.

    Returns:
        Tuple of (level, explanation).
    """
    properties = asset.algorithm_properties
    if properties is None:
        return (
            QS_UNKNOWN,
            "The field 'algorithmProperties' was not set, which does not allow further categorization",
        )

    quantum_level = properties.nist_quantum_security_level
    if quantum_level is not None and quantum_level > 0:
        return (
            QUANTUM_SAFE,
            "The field 'nistQuantumSecurityLevel' was set with a strictly positive value",
        )

    if properties.primitive is None:
        return (
            QS_UNKNOWN,
            "The asset primitive was not set, which does not allow further categorization",
        )

    # Unrecognized primitive symbols are treated like "unknown"
    primitive = Primitive.from_symbol(properties.primitive) or Primitive.UNKNOWN
    if primitive not in ASYMMETRIC_PRIMITIVES and primitive not in UNKNOWN_PRIMITIVES:
        return (
            QS_NOT_APPLICABLE,
            "The asset has a symmetric primitive, so the Quantum Safe categorization is not applicable",
        )

    if asset.oid is not None and asset.oid.strip() in QUANTUM_SAFE_OIDS:
        return QUANTUM_SAFE, "The OID of the asset is part of the Quantum Safe OIDs whitelist"

    if asset.name:
        lower_name = asset.name.lower()
        for family in QUANTUM_SAFE_NAMES:
            if family in lower_name:
                return (
                    QUANTUM_SAFE,
                    f"The name of the asset contains '{family}', which is part of the "
                    "Quantum Safe whitelist of component names",
                )

    if primitive in ASYMMETRIC_PRIMITIVES:
        return (
            NOT_QUANTUM_SAFE,
            "The asset has an asymmetric primitive and does not match with the "
            "Quantum Safe whitelists of OIDs and names",
        )
    return (
        QS_UNKNOWN,
        "The asset primitive is unclear and does not allow further categorization",
    )


# ---------------------------------------------------------------------------
# NIST SP 800-131A Rev. 3
# ---------------------------------------------------------------------------

DISALLOWED = ComplianceLevel(
    id=1,
    label="Disallowed",
    color="#dc3545",
    icon=ComplianceIcon.ERROR,
    assessment_id=NOT_COMPLIANT.id,
)
DEPRECATED = ComplianceLevel(
    id=2,
    label="Deprecated",
    description="Use is discouraged and may be disallowed soon",
    color="#ffc107",
    icon=ComplianceIcon.WARNING,
    assessment_id=NOT_COMPLIANT.id,
)
ACCEPTABLE = ComplianceLevel(
    id=3,
    label="Acceptable",
    color="green",
    icon=ComplianceIcon.CHECKMARK_SECURE,
    assessment_id=COMPLIANT.id,
)
LEGACY_USE = ComplianceLevel(
    id=4,
    label="Legacy Use",
    description="Only allowed to decrypt/verify previously protected data",
    color="gray",
    icon=ComplianceIcon.NOT_APPLICABLE,
    assessment_id=COMPLIANT.id,
)
NIST_UNKNOWN = ComplianceLevel(
    id=5,
    label="Unknown",
    description="Could not determine compliance status",
    color="#17a9d1",
    icon=ComplianceIcon.UNKNOWN,
    assessment_id=NOT_COMPLIANT.id,
)

NIST_SP_800_131A_R3_POLICY = Policy(
    id=NIST_SP_800_131A_R3_POLICY_ID,
    name="NIST SP 800-131A Rev. 3 Compliance",
    default_level_id=NIST_UNKNOWN.id,
    levels=(DISALLOWED, DEPRECATED, ACCEPTABLE, LEGACY_USE, NIST_UNKNOWN),
    assessment_levels=DEFAULT_ASSESSMENT_LEVELS,
    default_assessment_id=NOT_COMPLIANT.id,
)

# Evaluated top to bottom against the lower-cased asset name; first match wins
_NAME_RULES: tuple[tuple[tuple[str, ...], ComplianceLevel, str], ...] = (
    (("sha1",), DEPRECATED, "SHA-1 is deprecated and disallowed after 2030"),
    (("sha224",), DEPRECATED, "SHA-224 is deprecated and disallowed after 2030"),
    (("aes",), ACCEPTABLE, "AES is acceptable at all key sizes (128+)"),
    (("tdea", "3des", "triple des"), DISALLOWED, "TDEA is disallowed"),
)

# Evaluated after the name rules against the lower-cased algorithm mode
_MODE_RULES: tuple[tuple[str, ComplianceLevel, str], ...] = (
    ("ecb", LEGACY_USE, "ECB mode is disallowed for encryption but allowed as legacy use for decryption"),
    ("cbc", ACCEPTABLE, "CBC mode is acceptable"),
    ("cfb", ACCEPTABLE, "CFB mode is acceptable"),
    ("ctr", ACCEPTABLE, "CTR mode is acceptable"),
    ("ofb", ACCEPTABLE, "OFB mode is acceptable"),
    ("ccm", ACCEPTABLE, "CCM mode is acceptable"),
    ("gcm", ACCEPTABLE, "GCM mode is acceptable"),
    ("xts", ACCEPTABLE, "XTS-AES mode is acceptable"),
    ("ff3", DISALLOWED, "FF3 mode is disallowed"),
)


def classify_nist_800_131a(
    policy: Policy,
    asset: CryptographicAsset,
) -> tuple[ComplianceLevel, str]:
    """Classify one asset with the fixed NIST SP 800-131A rule list.

    Args:
        policy: The NIST policy (unused; levels are module constants).
        asset: The asset to classify.

    Returns:
        Tuple of (level, explanation); Unknown when no rule applies.
    """
    name = (asset.name or "").lower()
    for needles, level, message in _NAME_RULES:
        if any(needle in name for needle in needles):
            return level, message

    properties = asset.algorithm_properties
    mode = (properties.mode or "").lower() if properties is not None else ""
    if mode:
        for needle, level, message in _MODE_RULES:
            if needle in mode:
                return level, message

    return NIST_UNKNOWN, "Could not categorize this asset"


def create_quantum_safe_evaluator() -> PolicyEvaluator:
    """Create the evaluator for the built-in ``quantum_safe`` policy."""
    return PolicyEvaluator(QUANTUM_SAFE_POLICY, classify_quantum_safety)


def create_nist_800_131a_evaluator() -> PolicyEvaluator:
    """Create the evaluator for the built-in ``nist_sp_800_131_ar3`` policy."""
    return PolicyEvaluator(NIST_SP_800_131A_R3_POLICY, classify_nist_800_131a)
