"""Crypto compliance engine.

Evaluates inventories of cryptographic assets against declarative or
built-in compliance policies.

Typical use::

    registry = create_default_registry()
    evaluator = registry.get("quantum_safe")
    result = evaluator.evaluate("quantum_safe", assets)
"""

from crypto_compliance_engine.compliance_as_code.engine import (
    PolicyEvaluator,
    RuleBasedClassifier,
    create_rule_based_evaluator,
)
from crypto_compliance_engine.compliance_as_code.policy_parser import parse_policy, parse_policy_file
from crypto_compliance_engine.compliance_as_code.policy_registry import (
    PolicyRegistry,
    create_default_registry,
)
from crypto_compliance_engine.compliance_as_code.reporting import (
    ComplianceReport,
    build_compliance_report,
)
from crypto_compliance_engine.compliance_as_code.resolver import ResolutionStrategy
from crypto_compliance_engine.core.assets import AssetType, CryptographicAsset
from crypto_compliance_engine.core.models import (
    AggregateResult,
    AssessmentLevel,
    ComplianceLevel,
    EvaluationFinding,
    Policy,
)
from crypto_compliance_engine.errors import (
    ComplianceEngineError,
    PolicyNotFoundError,
    PolicyParseError,
    PolicyRegistrationError,
)

__all__ = [
    "AggregateResult",
    "AssessmentLevel",
    "AssetType",
    "ComplianceEngineError",
    "ComplianceLevel",
    "ComplianceReport",
    "CryptographicAsset",
    "EvaluationFinding",
    "Policy",
    "PolicyEvaluator",
    "PolicyNotFoundError",
    "PolicyParseError",
    "PolicyRegistrationError",
    "PolicyRegistry",
    "ResolutionStrategy",
    "RuleBasedClassifier",
    "build_compliance_report",
    "create_default_registry",
    "create_rule_based_evaluator",
    "parse_policy",
    "parse_policy_file",
]
