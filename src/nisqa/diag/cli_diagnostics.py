from __future__ import annotations

from pathlib import Path

from nisqa.diag.diagnostic import Diagnostic, Severity
from nisqa.errors import (
    ConfigurationError,
    NisqaError,
    NoConnectorError,
    RuleEngineUnavailableError,
)


def _origin(file: Path | str | None) -> str:
    return "<cli>" if file is None else str(file)


def from_error(exc: NisqaError, *, file: Path | str | None = None) -> Diagnostic:
    help_lines: list[str] = []
    if isinstance(exc, NoConnectorError):
        help_lines.append(
            f"Register a capability plugin for `{exc.ecosystem}` under `[plugins.services.<name>]` "
            "or `plugins.modules` in nisqa.toml."
        )
    elif isinstance(exc, RuleEngineUnavailableError):
        help_lines.append("Check `rules.url`, or set `rules.engine = \"embedded\"`.")
    elif isinstance(exc, ConfigurationError):
        help_lines.append("Config files must use TOML and declare `schema_version = \"1\"`.")
    return Diagnostic(
        severity=Severity.ERROR,
        code=exc.code,
        message=exc.message,
        origin=_origin(file),
        help=help_lines,
    )


def invalid_input(message: str, *, file: Path | str | None = None) -> Diagnostic:
    return Diagnostic(
        severity=Severity.ERROR,
        code="NISQA4001",
        message=message,
        origin=_origin(file),
        help=["Use `nisqa --help` to inspect the expected arguments."],
    )


def invalid_catalog(message: str, *, file: Path | str) -> Diagnostic:
    return Diagnostic(
        severity=Severity.ERROR,
        code="NISQA4002",
        message=message,
        origin=_origin(file),
        help=["Catalog files are JSON objects with `algorithms`, `implementations` and `targets`."],
    )


def unknown_entity(kind: str, entity_id: str, *, file: Path | str | None = None) -> Diagnostic:
    return Diagnostic(
        severity=Severity.ERROR,
        code="NISQA4003",
        message=f"unknown {kind} `{entity_id}`",
        origin=_origin(file),
        help=["Use `nisqa catalog show` to list the catalog contents."],
    )


def undeclared_parameters(
    implementation_id: str, kind: str, names: set[str], *, file: Path | str
) -> Diagnostic:
    listed = ", ".join(sorted(names))
    return Diagnostic(
        severity=Severity.WARNING,
        code="NISQA4101",
        message=f"{kind} rule of `{implementation_id}` references undeclared parameters: {listed}",
        origin=_origin(file),
        help=["Declare the parameters on the implementation or on its algorithm."],
    )
