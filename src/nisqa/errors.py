from __future__ import annotations


class NisqaError(Exception):
    code = "NISQA0000"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(NisqaError):
    """The operation cannot run with the current configuration."""

    code = "NISQA1001"


class RuleEngineUnavailableError(ConfigurationError):
    code = "NISQA1002"


class NoConnectorError(ConfigurationError):
    code = "NISQA1003"

    def __init__(self, ecosystem: str) -> None:
        super().__init__(f"no capability plugin registered for ecosystem `{ecosystem}`")
        self.ecosystem = ecosystem


class RuleEvaluationError(NisqaError):
    """A rule could not be evaluated for a binding (malformed rule, unbound parameter, bad answer)."""

    code = "NISQA2001"


class RemoteServiceError(NisqaError):
    """Transport failure or malformed response from a remote collaborator."""

    code = "NISQA3001"


class InvalidTransitionError(NisqaError):
    code = "NISQA3002"
