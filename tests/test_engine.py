"""Tests for rule matching, resolution and evaluation of declarative policies.

Covers:
- rule_matcher: wildcards, filters, sets, IKEv2 transforms
- resolver: specificity ordering, level tie-break, worst_match mode
- engine: findings, aggregation, identifier mismatch, missing properties
"""

from collections.abc import Callable

import pytest

from crypto_compliance_engine.compliance_as_code.engine import (
    PolicyEvaluator,
    aggregate_assessment,
    create_rule_based_evaluator,
)
from crypto_compliance_engine.compliance_as_code.policy_parser import (
    COMPLIANT,
    NOT_COMPLIANT,
    parse_policy,
)
from crypto_compliance_engine.compliance_as_code.resolver import ResolutionStrategy
from crypto_compliance_engine.compliance_as_code.rule_matcher import find_matching_rules, rule_matches
from crypto_compliance_engine.core.assets import CryptographicAsset
from crypto_compliance_engine.core.models import EvaluationFinding, Policy

_LEVELS = """
id = "engine_test"
name = "Engine Test"
default_level = 2

[[levels]]
id = 1
label = "Acceptable"
color = "green"
icon = "checkmark"
assessment_level = 1

[[levels]]
id = 2
label = "Unknown"
color = "gray"
icon = "unknown"
assessment_level = 2

[[levels]]
id = 3
label = "Disallowed"
color = "red"
icon = "error"
assessment_level = 2
"""

_GENERIC_BLOCK_CIPHER = """
[[rule]]
description = "Block ciphers need review"
level = 3
asset_type = "algorithm"
primitive = "block-cipher"
"""

_SPECIFIC_GCM = """
[[rule]]
description = "Block ciphers in GCM mode are acceptable"
level = 1
asset_type = "algorithm"
primitive = "block-cipher"
mode = "gcm"
"""

_GCM_ONLY = """
[[rule]]
description = "GCM is disallowed here"
level = 3
asset_type = "algorithm"
mode = "gcm"
"""

_BLOCK_CIPHER_OK = """
[[rule]]
description = "Block ciphers are acceptable"
level = 1
asset_type = "algorithm"
primitive = "block-cipher"
"""


def _policy(*rules: str) -> Policy:
    if not rules:
        return parse_policy("rule = []\n" + _LEVELS)
    return parse_policy(_LEVELS + "".join(rules))


def _evaluate(policy: Policy, *assets: CryptographicAsset, **kwargs) -> list[EvaluationFinding]:
    evaluator = create_rule_based_evaluator(policy, **kwargs)
    result = evaluator.evaluate(policy.id, list(assets))
    assert result.error is False
    return result.findings


# ---------------------------------------------------------------------------
# Rule matching
# ---------------------------------------------------------------------------


def test_rule_without_fields_matches_every_asset_of_its_type(
    make_algorithm: Callable[..., CryptographicAsset],
    make_protocol: Callable[..., CryptographicAsset],
) -> None:
    """A rule constraining only the asset type is a wildcard for that type."""
    policy = _policy('[[rule]]\ndescription = "any algorithm"\nlevel = 1\nasset_type = "algorithm"\n')
    rule = policy.rules[0]
    assert rule_matches(rule, make_algorithm(name="anything", primitive="hash"))
    assert rule_matches(rule, make_algorithm())
    assert not rule_matches(rule, make_protocol(type="tls"))


def test_unset_asset_field_does_not_match_constrained_rule(
    make_algorithm: Callable[..., CryptographicAsset],
) -> None:
    policy = _policy(_SPECIFIC_GCM)
    assert not rule_matches(policy.rules[0], make_algorithm(primitive="block-cipher"))


def test_name_and_oid_filters(make_algorithm: Callable[..., CryptographicAsset]) -> None:
    policy = _policy(
        '[[rule]]\ndescription = "rsa"\nlevel = 3\nasset_type = "algorithm"\n'
        'name = "RSA-2048"\noid = "1.2.840.113549.1.1.1"\n'
    )
    rule = policy.rules[0]
    assert rule_matches(rule, make_algorithm(name="rsa-2048", oid="1.2.840.113549.1.1.1"))
    assert not rule_matches(rule, make_algorithm(name="rsa-2048"))
    assert not rule_matches(rule, make_algorithm(name="RSA-4096", oid="1.2.840.113549.1.1.1"))


def test_crypto_function_set_intersection(make_algorithm: Callable[..., CryptographicAsset]) -> None:
    policy = _policy(
        '[[rule]]\ndescription = "signing"\nlevel = 1\nasset_type = "algorithm"\n'
        'crypto_functions = ["sign", "verify"]\n'
    )
    rule = policy.rules[0]
    assert rule_matches(rule, make_algorithm(crypto_functions=["keygen", "verify"]))
    assert not rule_matches(rule, make_algorithm(crypto_functions=["encrypt"]))
    assert not rule_matches(rule, make_algorithm())


def test_protocol_cipher_suites_and_version(make_protocol: Callable[..., CryptographicAsset]) -> None:
    policy = _policy(
        '[[rule]]\ndescription = "rc4"\nlevel = 3\nasset_type = "protocol"\n'
        'type = "tls"\nversion = "1.2"\ncipher_suites = ["TLS_RSA_WITH_RC4_128_SHA"]\n'
    )
    rule = policy.rules[0]
    asset = make_protocol(
        type="tls",
        version="1.2",
        cipher_suites=[{"name": "TLS_RSA_WITH_RC4_128_SHA"}, {"name": "TLS_RSA_WITH_AES_128_CBC_SHA"}],
    )
    assert rule_matches(rule, asset)
    assert not rule_matches(rule, make_protocol(type="tls", version="1.3", cipher_suites=["TLS_RSA_WITH_RC4_128_SHA"]))


def test_ikev2_transform_references_must_be_covered(make_protocol: Callable[..., CryptographicAsset]) -> None:
    policy = _policy(
        '[[rule]]\ndescription = "ike"\nlevel = 1\nasset_type = "protocol"\n'
        'type = "ipsec"\n\n[rule.ikev2_transform_types]\nencr = ["aes-256-gcm"]\n'
    )
    rule = policy.rules[0]
    covered = make_protocol(type="ipsec", ikev2_transform_types={"encr": {"ref": ["aes-256-gcm", "aes-128-gcm"]}})
    missing_type = make_protocol(type="ipsec", ikev2_transform_types={"prf": ["sha-256"]})
    assert rule_matches(rule, covered)
    assert not rule_matches(rule, missing_type)
    assert not rule_matches(rule, make_protocol(type="ipsec"))


def test_find_matching_rules_keeps_rule_order(make_algorithm: Callable[..., CryptographicAsset]) -> None:
    policy = _policy(_GENERIC_BLOCK_CIPHER, _SPECIFIC_GCM, _GCM_ONLY)
    matches = find_matching_rules(policy, make_algorithm(primitive="block-cipher", mode="gcm"))
    assert [m.rule.description for m in matches] == [
        "Block ciphers need review",
        "Block ciphers in GCM mode are acceptable",
        "GCM is disallowed here",
    ]


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "rules",
    [(_GENERIC_BLOCK_CIPHER, _SPECIFIC_GCM), (_SPECIFIC_GCM, _GENERIC_BLOCK_CIPHER)],
)
def test_most_specific_rule_wins_regardless_of_order(
    rules: tuple[str, str],
    make_algorithm: Callable[..., CryptographicAsset],
) -> None:
    """The rule constraining more fields wins even with a better level."""
    finding = _evaluate(_policy(*rules), make_algorithm(primitive="block-cipher", mode="gcm"))[0]
    assert finding.compliance_level.id == 1
    assert finding.message.startswith("Block ciphers in GCM mode are acceptable")
    assert "Selected with specificity 3 over 1 other matching rule(s)" in finding.message


@pytest.mark.parametrize(
    "rules",
    [(_BLOCK_CIPHER_OK, _GCM_ONLY), (_GCM_ONLY, _BLOCK_CIPHER_OK)],
)
def test_equal_specificity_ties_go_to_the_worse_level(
    rules: tuple[str, str],
    make_algorithm: Callable[..., CryptographicAsset],
) -> None:
    finding = _evaluate(_policy(*rules), make_algorithm(primitive="block-cipher", mode="gcm"))[0]
    assert finding.compliance_level.id == 3
    assert finding.message.startswith("GCM is disallowed here")


def test_single_match_message_is_rule_description(make_algorithm: Callable[..., CryptographicAsset]) -> None:
    finding = _evaluate(_policy(_SPECIFIC_GCM), make_algorithm(primitive="block-cipher", mode="gcm"))[0]
    assert finding.message == "Block ciphers in GCM mode are acceptable"


def test_no_match_gives_default_level(make_algorithm: Callable[..., CryptographicAsset]) -> None:
    finding = _evaluate(_policy(_SPECIFIC_GCM), make_algorithm(primitive="hash"))[0]
    assert finding.compliance_level.id == 2
    assert finding.message == "No compliance rules matched for asset type: algorithm"


def test_worst_match_takes_worst_level_and_lists_every_rule(
    make_algorithm: Callable[..., CryptographicAsset],
) -> None:
    """worst_match ignores specificity."""
    policy = _policy(_SPECIFIC_GCM, _GENERIC_BLOCK_CIPHER)
    finding = _evaluate(
        policy,
        make_algorithm(primitive="block-cipher", mode="gcm"),
        strategy=ResolutionStrategy.WORST_MATCH,
    )[0]
    assert finding.compliance_level.id == 3
    assert finding.message == (
        "- Block ciphers in GCM mode are acceptable\n- Block ciphers need review"
    )


def test_worst_match_keeps_default_when_it_is_worse(
    make_algorithm: Callable[..., CryptographicAsset],
) -> None:
    """The default level competes with the matched levels."""
    finding = _evaluate(
        _policy(_BLOCK_CIPHER_OK),
        make_algorithm(primitive="block-cipher"),
        strategy=ResolutionStrategy.WORST_MATCH,
    )[0]
    assert finding.compliance_level.id == 2
    assert finding.message == "- Block ciphers are acceptable"


def test_rule_with_undefined_level_resolves_to_default(
    make_algorithm: Callable[..., CryptographicAsset],
) -> None:
    policy = _policy('[[rule]]\ndescription = "ghost"\nlevel = 42\nasset_type = "algorithm"\n')
    finding = _evaluate(policy, make_algorithm(primitive="hash"))[0]
    assert finding.compliance_level == policy.default_level


# ---------------------------------------------------------------------------
# Related crypto material key sizes
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(("size", "level_id"), [(256, 1), (128, 1), (600, 2), (64, 2)])
def test_key_size_range_rule(
    size: int,
    level_id: int,
    sample_policy: Policy,
    make_material: Callable[..., CryptographicAsset],
) -> None:
    """A '>=128 <512' size rule matches inside the range, else the default applies."""
    finding = _evaluate(sample_policy, make_material(type="secret-key", size=size))[0]
    assert finding.compliance_level.id == level_id


_KEM_KEY_SIZE = """
[[rule]]
description = "KEM keys between 128 and 511 bits are acceptable"
level = 1
asset_type = "related-crypto-material"
primitive = "kem"
size = ">=128 <512"
"""


@pytest.mark.parametrize(("size", "level_id"), [(256, 1), (600, 2)])
def test_material_rule_with_primitive_and_size(
    size: int,
    level_id: int,
    make_material: Callable[..., CryptographicAsset],
) -> None:
    """Primitive has no meaning for key material; the size range still decides."""
    finding = _evaluate(_policy(_KEM_KEY_SIZE), make_material(type="public-key", size=size))[0]
    assert finding.compliance_level.id == level_id


def test_kem_primitive_rule_matches(
    sample_policy: Policy,
    make_algorithm: Callable[..., CryptographicAsset],
) -> None:
    finding = _evaluate(sample_policy, make_algorithm(name="ML-KEM-768", primitive="kem"))[0]
    assert finding.compliance_level.label == "Acceptable"


# ---------------------------------------------------------------------------
# Evaluation and aggregation
# ---------------------------------------------------------------------------


def test_findings_follow_input_order(
    sample_policy: Policy,
    make_algorithm: Callable[..., CryptographicAsset],
) -> None:
    assets = [
        make_algorithm(identifier="a", primitive="kem"),
        make_algorithm(identifier="b", mode="ecb"),
        make_algorithm(identifier="c", primitive="hash"),
    ]
    findings = _evaluate(sample_policy, *assets)
    assert [f.asset_identifier for f in findings] == ["a", "b", "c"]
    assert [f.compliance_level.id for f in findings] == [1, 3, 2]


def test_aggregate_is_worst_assessment(
    sample_policy: Policy,
    make_algorithm: Callable[..., CryptographicAsset],
) -> None:
    evaluator = create_rule_based_evaluator(sample_policy)
    compliant = evaluator.evaluate(sample_policy.id, [make_algorithm(primitive="kem")])
    mixed = evaluator.evaluate(
        sample_policy.id,
        [make_algorithm(primitive="kem"), make_algorithm(identifier="x", mode="ecb")],
    )
    assert compliant.assessment_level == COMPLIANT
    assert mixed.assessment_level == NOT_COMPLIANT


def test_empty_inventory_gets_default_assessment(sample_policy: Policy) -> None:
    result = create_rule_based_evaluator(sample_policy).evaluate(sample_policy.id, [])
    assert result.findings == []
    assert result.error is False
    assert result.assessment_level == sample_policy.default_assessment_level


def test_identifier_mismatch_returns_error_result(
    sample_policy: Policy,
    make_algorithm: Callable[..., CryptographicAsset],
) -> None:
    """Asking an evaluator for another policy flags an error instead of raising."""
    result = create_rule_based_evaluator(sample_policy).evaluate("quantum_safe", [make_algorithm(primitive="kem")])
    assert result.error is True
    assert result.findings == []


def test_missing_property_bag_gives_unknown_level(sample_policy: Policy) -> None:
    asset = CryptographicAsset(identifier="bare", asset_type="algorithm", name="AES")
    finding = _evaluate(sample_policy, asset)[0]
    assert finding.compliance_level.label == "Unknown"
    assert "carries no algorithm properties" in finding.message


def test_unmapped_assessment_falls_back_to_policy_default() -> None:
    """A level pointing at an undefined assessment id counts as the default severity."""
    policy = parse_policy(
        """
id = "gap"
name = "Gap"
default_level = 1
default_assessment_level = 1
rule = []

[[levels]]
id = 1
label = "Odd"
color = "gray"
icon = "test"
assessment_level = 9
"""
    )
    finding = EvaluationFinding(asset_identifier="x", compliance_level=policy.levels[0], message="m")
    assert aggregate_assessment(policy, [finding]) == COMPLIANT


def test_evaluator_exposes_policy_catalogs(sample_policy: Policy) -> None:
    evaluator = create_rule_based_evaluator(sample_policy)
    assert isinstance(evaluator, PolicyEvaluator)
    assert evaluator.policy_id == "sample_policy"
    assert evaluator.name == "Sample Policy"
    assert [level.id for level in evaluator.compliance_levels] == [1, 2, 3]
    assert evaluator.default_compliance_level.id == 2
    assert evaluator.assessment_levels == [COMPLIANT, NOT_COMPLIANT]
    assert evaluator.default_assessment_level == NOT_COMPLIANT
