"""Compliance-as-code engine for cryptographic asset inventories.

Evaluates CBOM-derived assets against named compliance policies and returns
one finding per asset plus the worst assessment level of the inventory.

Modules:
- predicates: Compiled single-field tests (text, enum, number, range, set)
- rule_matcher: Per-asset-type field tables and rule matching
- resolver: Picks one level per asset when several rules match
- policy_parser: TOML/YAML policy documents to Policy objects
- engine: PolicyEvaluator and severity aggregation
- builtin_policies: Quantum-safe and NIST SP 800-131A heuristics
- policy_registry: Injectable map of policy identifier to evaluator
- reporting: Serializable compliance reports
"""
