"""Exception types raised by the crypto compliance engine.

Only configuration-time operations raise: parsing a policy document and
mutating the policy registry. Evaluation never raises for bad input data;
problems there surface as findings or as the ``error`` flag on the result.
"""


class ComplianceEngineError(Exception):
    """Base class for all compliance engine errors.

    Args:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class PolicyParseError(ComplianceEngineError):
    """A policy document could not be turned into a Policy.

    Args:
        message: What went wrong.
        field: Dotted path of the offending field (e.g. ``rule.2.level``),
            or None when the document itself is malformed.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(f"{field}: {message}" if field else message)
        self.field = field
        self.reason = message


class PolicyRegistrationError(ComplianceEngineError):
    """A registry mutation was refused (e.g. replacing a built-in policy)."""


class PolicyNotFoundError(ComplianceEngineError):
    """A policy identifier is not present in the registry."""
