from nisqa.config.types import NisqaConfig
from nisqa.errors import (
    ConfigurationError,
    InvalidTransitionError,
    NisqaError,
    NoConnectorError,
    RemoteServiceError,
    RuleEngineUnavailableError,
    RuleEvaluationError,
)
from nisqa.service import SelectionService, build_service

__all__ = [
    "ConfigurationError",
    "InvalidTransitionError",
    "NisqaConfig",
    "NisqaError",
    "NoConnectorError",
    "RemoteServiceError",
    "RuleEngineUnavailableError",
    "RuleEvaluationError",
    "SelectionService",
    "build_service",
]
