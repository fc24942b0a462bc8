"""Test fixtures for crypto-compliance-engine.

Provides:
- sample_policy_toml: A small declarative policy document (TOML)
- sample_policy: The parsed sample policy
- registry: A PolicyRegistry holding only the built-in policies
- make_algorithm / make_material / make_protocol: asset factories
- reset_logging: restores logging configuration after every test
"""

import logging
from collections.abc import Callable, Iterator
from typing import Any

import pytest
import structlog

from crypto_compliance_engine.compliance_as_code.policy_parser import parse_policy
from crypto_compliance_engine.compliance_as_code.policy_registry import PolicyRegistry
from crypto_compliance_engine.core.assets import CryptographicAsset
from crypto_compliance_engine.core.models import Policy
from crypto_compliance_engine.observability import clear_context

SAMPLE_POLICY_TOML = """
id = "sample_policy"
name = "Sample Policy"
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
color = "#17a9d1"
icon = "unknown"
is_uncompliant = true

[[levels]]
id = 3
label = "Disallowed"
color = "#dc3545"
icon = "error"
is_uncompliant = true

[[rule]]
description = "Key encapsulation is acceptable"
level = 1
asset_type = "algorithm"
primitive = "kem"

[[rule]]
description = "Keys from 128 up to 511 bits are acceptable"
level = 1
asset_type = "related-crypto-material"
size = ">=128 <512"

[[rule]]
description = "ECB mode is disallowed"
level = 3
asset_type = "algorithm"
mode = "ecb"
"""


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Undo logging configuration applied by a test."""
    root_level = logging.getLogger().level
    yield
    clear_context()
    structlog.reset_defaults()
    logging.getLogger().setLevel(root_level)


@pytest.fixture()
def sample_policy_toml() -> str:
    """Return the sample policy document text.

    Returns:
        A valid TOML policy with three levels and three rules.
    """
    return SAMPLE_POLICY_TOML


@pytest.fixture()
def sample_policy(sample_policy_toml: str) -> Policy:
    """Parse the sample policy document.

    Args:
        sample_policy_toml: Injected document text.

    Returns:
        The parsed Policy.
    """
    return parse_policy(sample_policy_toml)


@pytest.fixture()
def registry() -> PolicyRegistry:
    """Create a registry with only the built-in policies.

    Returns:
        A fresh PolicyRegistry defaulting to quantum_safe.
    """
    return PolicyRegistry()


@pytest.fixture()
def make_algorithm() -> Callable[..., CryptographicAsset]:
    """Return a factory for algorithm assets.

    Returns:
        Callable taking name, oid and algorithm property keywords.
    """

    def _make(
        name: str | None = None,
        oid: str | None = None,
        identifier: str = "algo-1",
        **properties: Any,
    ) -> CryptographicAsset:
        return CryptographicAsset(
            identifier=identifier,
            asset_type="algorithm",
            name=name,
            oid=oid,
            algorithm_properties=properties,
        )

    return _make


@pytest.fixture()
def make_material() -> Callable[..., CryptographicAsset]:
    """Return a factory for related-crypto-material assets.

    Returns:
        Callable taking related crypto material property keywords.
    """

    def _make(identifier: str = "key-1", name: str | None = None, **properties: Any) -> CryptographicAsset:
        return CryptographicAsset(
            identifier=identifier,
            asset_type="related-crypto-material",
            name=name,
            related_crypto_material_properties=properties,
        )

    return _make


@pytest.fixture()
def make_protocol() -> Callable[..., CryptographicAsset]:
    """Return a factory for protocol assets.

    Returns:
        Callable taking protocol property keywords.
    """

    def _make(identifier: str = "proto-1", name: str | None = None, **properties: Any) -> CryptographicAsset:
        return CryptographicAsset(
            identifier=identifier,
            asset_type="protocol",
            name=name,
            protocol_properties=properties,
        )

    return _make
