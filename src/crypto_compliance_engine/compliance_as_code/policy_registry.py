"""Policy registry: the injectable map from policy identifier to evaluator.

The PolicyRegistry is constructed once at process start (see
``create_default_registry``) and mutated afterwards only through its
register/remove API. It supports:
- Built-in policies that are always present and cannot be replaced or removed
- Registering custom policies from evaluators or from policy documents
- Content hashing so re-registering an unchanged document is a no-op
- Bulk loading of a directory of documents at startup

Lookups for unknown identifiers fall back to the registry's default policy.
All reads and writes are serialized with a re-entrant lock so a lookup never
observes a half-registered policy.
"""

import hashlib
import threading
from pathlib import Path
from typing import Any

from crypto_compliance_engine.compliance_as_code.builtin_policies import (
    BUILTIN_POLICY_IDS,
    QUANTUM_SAFE_POLICY_ID,
    create_nist_800_131a_evaluator,
    create_quantum_safe_evaluator,
)
from crypto_compliance_engine.compliance_as_code.engine import create_rule_based_evaluator
from crypto_compliance_engine.compliance_as_code.policy_parser import (
    SUPPORTED_FORMATS,
    format_for_path,
    parse_policy,
)
from crypto_compliance_engine.compliance_as_code.resolver import ResolutionStrategy
from crypto_compliance_engine.core.interfaces import IComplianceEvaluator
from crypto_compliance_engine.errors import (
    PolicyNotFoundError,
    PolicyParseError,
    PolicyRegistrationError,
)
from crypto_compliance_engine.observability import bind_context, configure_logging, get_logger
from crypto_compliance_engine.settings import Settings, get_settings

logger = get_logger(__name__)


class PolicyRegistry:
    """Registry of compliance evaluators keyed by policy identifier.

    The built-in policies are registered on construction.

    Args:
        default_policy_id: Identifier returned for unknown lookups. Must name
            a policy registered by the time ``get`` is called.
        strategy: Resolution strategy for policies registered from documents.
    """

    def __init__(
        self,
        default_policy_id: str = QUANTUM_SAFE_POLICY_ID,
        strategy: ResolutionStrategy = ResolutionStrategy.SPECIFICITY,
    ) -> None:
        self._lock = threading.RLock()
        self._evaluators: dict[str, IComplianceEvaluator] = {}
        self._content_hashes: dict[str, str] = {}
        self._default_policy_id = default_policy_id
        self._strategy = strategy

        for evaluator in (create_quantum_safe_evaluator(), create_nist_800_131a_evaluator()):
            self._evaluators[evaluator.policy_id] = evaluator

    @staticmethod
    def _compute_hash(content: str) -> str:
        return hashlib.sha256(content.encode("utf-8")).hexdigest()

    @property
    def default_policy_id(self) -> str:
        return self._default_policy_id

    @staticmethod
    def is_builtin(policy_id: str) -> bool:
        return policy_id in BUILTIN_POLICY_IDS

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get(self, policy_id: str | None) -> IComplianceEvaluator:
        """Return the evaluator for ``policy_id``, or the default evaluator.

        Args:
            policy_id: Requested identifier; None or unknown ids fall back.

        Returns:
            The matching evaluator, or the default policy's evaluator.
        """
        with self._lock:
            evaluator = self._evaluators.get(policy_id) if policy_id is not None else None
            if evaluator is not None:
                return evaluator

            logger.debug(
                "Unknown policy identifier; falling back to default",
                requested=policy_id,
                default=self._default_policy_id,
            )
            default = self._evaluators.get(self._default_policy_id)
            if default is None:
                # Only reachable when the configured default was never loaded
                logger.error(
                    "Default policy is not registered; using built-in quantum_safe",
                    default=self._default_policy_id,
                )
                default = self._evaluators[QUANTUM_SAFE_POLICY_ID]
            return default

    def require(self, policy_id: str) -> IComplianceEvaluator:
        """Return the evaluator for ``policy_id`` without falling back.

        Raises:
            PolicyNotFoundError: If no policy is registered under ``policy_id``.
        """
        with self._lock:
            evaluator = self._evaluators.get(policy_id)
        if evaluator is None:
            raise PolicyNotFoundError(f"Policy '{policy_id}' is not registered")
        return evaluator

    def __contains__(self, policy_id: object) -> bool:
        with self._lock:
            return policy_id in self._evaluators

    def list_policies(self) -> list[dict[str, str]]:
        """Return identifier and display name pairs for discovery.

        Returns:
            List of ``{"id": ..., "label": ...}`` dicts in registration order.
        """
        with self._lock:
            return [
                {"id": policy_id, "label": evaluator.name}
                for policy_id, evaluator in self._evaluators.items()
            ]

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def register(self, policy_id: str, evaluator: IComplianceEvaluator) -> None:
        """Register or replace a custom policy evaluator.

        Args:
            policy_id: Identifier to register under.
            evaluator: Evaluator answering for ``policy_id``.

        Raises:
            PolicyRegistrationError: If ``policy_id`` names a built-in policy
                or differs from the evaluator's own identifier.
        """
        if self.is_builtin(policy_id):
            raise PolicyRegistrationError(f"Built-in policy '{policy_id}' cannot be replaced")
        if evaluator.policy_id != policy_id:
            raise PolicyRegistrationError(
                f"Evaluator answers to '{evaluator.policy_id}', not '{policy_id}'"
            )

        with self._lock:
            replaced = policy_id in self._evaluators
            self._evaluators[policy_id] = evaluator
            self._content_hashes.pop(policy_id, None)

        logger.info(
            "Policy registered",
            policy_id=policy_id,
            policy_name=evaluator.name,
            replaced=replaced,
        )

    def register_document(self, content: str, fmt: str = "toml") -> IComplianceEvaluator:
        """Parse a policy document and register it as a rule-based policy.

        Registering the same content again for the same identifier leaves
        the existing evaluator in place.

        Args:
            content: Policy document text.
            fmt: ``toml`` or ``yaml``.

        Returns:
            The registered (or unchanged) evaluator.

        Raises:
            PolicyParseError: If the document is invalid; nothing is registered.
            PolicyRegistrationError: If the document declares a built-in id.
        """
        content_hash = self._compute_hash(content)
        policy = parse_policy(content, fmt)

        with self._lock:
            existing = self._evaluators.get(policy.id)
            if existing is not None and self._content_hashes.get(policy.id) == content_hash:
                logger.debug(
                    "Policy unchanged; skipping reload",
                    policy_id=policy.id,
                    content_hash=content_hash,
                )
                return existing

            evaluator = create_rule_based_evaluator(policy, self._strategy)
            self.register(policy.id, evaluator)
            self._content_hashes[policy.id] = content_hash

        return evaluator

    def register_file(self, path: Path) -> IComplianceEvaluator:
        """Read a policy document from disk and register it.

        Raises:
            PolicyParseError: If the file is unreadable or invalid.
            PolicyRegistrationError: If the document declares a built-in id.
        """
        fmt = format_for_path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise PolicyParseError(f"Cannot read policy file '{path}': {exc}") from exc
        return self.register_document(content, fmt)

    def load_from_directory(self, directory: Path) -> list[str]:
        """Register every policy document found directly in ``directory``.

        Invalid documents are logged and skipped; they never abort the load.

        Args:
            directory: Directory holding ``*.toml``, ``*.yaml`` or ``*.yml`` files.

        Returns:
            Identifiers of the policies registered, in file name order.
        """
        if not directory.is_dir():
            logger.warning("Policy directory not found", path=str(directory))
            return []

        loaded: list[str] = []
        for path in sorted(directory.iterdir()):
            if not path.is_file() or path.suffix.lower() not in (".toml", ".yaml", ".yml"):
                continue
            try:
                evaluator = self.register_file(path)
            except (PolicyParseError, PolicyRegistrationError) as exc:
                logger.error("Skipping invalid policy file", path=str(path), error=str(exc))
                continue
            loaded.append(evaluator.policy_id)

        logger.info(
            "Loaded policies from directory",
            path=str(directory),
            count=len(loaded),
            formats=list(SUPPORTED_FORMATS),
        )
        return loaded

    def remove(self, policy_id: str) -> bool:
        """Remove a custom policy from the registry.

        Args:
            policy_id: Identifier to remove.

        Returns:
            True if the policy was removed, False if it was a built-in policy
            or was not registered.
        """
        if self.is_builtin(policy_id):
            logger.warning("Refusing to remove built-in policy", policy_id=policy_id)
            return False

        with self._lock:
            removed = self._evaluators.pop(policy_id, None) is not None
            self._content_hashes.pop(policy_id, None)

        if removed:
            logger.info("Policy removed from registry", policy_id=policy_id)
        return removed

    def get_stats(self) -> dict[str, Any]:
        """Return registry statistics.

        Returns:
            Dict with total, built-in and custom counts and the default id.
        """
        with self._lock:
            total = len(self._evaluators)
            builtin = sum(1 for policy_id in self._evaluators if self.is_builtin(policy_id))
        return {
            "total_policies": total,
            "builtin_policies": builtin,
            "custom_policies": total - builtin,
            "default_policy": self._default_policy_id,
        }


def create_default_registry(settings: Settings | None = None) -> PolicyRegistry:
    """Build a registry from settings; this is the engine's startup hook.

    Configures logging from ``settings.log_level`` and ``settings.log_json``
    and binds ``settings.service_name`` as the ``service`` log field. Then
    registers the built-in policies, loads ``settings.policy_dir`` when set,
    and checks that the configured default policy exists.

    Args:
        settings: Settings to use; defaults to ``get_settings()``.

    Returns:
        The populated PolicyRegistry.

    Raises:
        PolicyNotFoundError: If ``settings.default_policy`` is not registered
            after loading.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_json)
    bind_context(service=settings.service_name)

    registry = PolicyRegistry(
        default_policy_id=settings.default_policy,
        strategy=ResolutionStrategy(settings.resolution_strategy),
    )
    if settings.policy_dir is not None:
        registry.load_from_directory(settings.policy_dir)

    if settings.default_policy not in registry:
        raise PolicyNotFoundError(
            f"Default policy '{settings.default_policy}' is not registered"
        )

    logger.info("Policy registry ready", **registry.get_stats())
    return registry
