from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import asdict, is_dataclass
from datetime import datetime
from enum import Enum
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from nisqa.catalog import InMemoryCatalog, load_catalog, parse_assignments
from nisqa.catalog.validation import undeclared_rule_parameters
from nisqa.config import NisqaConfig, discover_config_path, load_config
from nisqa.diag.cli_diagnostics import (
    from_error,
    invalid_catalog,
    invalid_input,
    undeclared_parameters,
    unknown_entity,
)
from nisqa.diag.diagnostic import Diagnostic
from nisqa.diag.reporter import DiagnosticReporter
from nisqa.errors import NisqaError
from nisqa.ranking.methods import list_methods
from nisqa.service import SelectionService, build_oracle, build_service
from nisqa.targeting.plugins import service_plugin_bundle
from nisqa.targeting.registry import CapabilityRegistry
from nisqa.targeting.types import SelectionResult

app = typer.Typer(
    help="NISQ analyzer: select, dispatch and rank quantum implementations",
    no_args_is_help=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)
catalog_app = typer.Typer(help="Catalog inspection commands")
plugins_app = typer.Typer(help="Capability plugin discovery commands")
rules_app = typer.Typer(help="Rule evaluation commands")
ranking_app = typer.Typer(help="Ranking method commands")

app.add_typer(catalog_app, name="catalog")
app.add_typer(plugins_app, name="plugins")
app.add_typer(rules_app, name="rules")
app.add_typer(ranking_app, name="ranking")

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class LogLevel(str, Enum):
    debug = "debug"
    info = "info"
    warning = "warning"
    error = "error"


CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to config TOML. Defaults to ./nisqa.toml when present.",
)
PARAM_OPTION = typer.Option(
    [],
    "--param",
    "-p",
    help="Input value as name=value (repeatable).",
)
NO_COLOR_OPTION = typer.Option(False, "--no-color", "-n", help="Disable ANSI color output.")
JSON_OPTION = typer.Option(False, "--json", "-j", help="Print machine-readable JSON.")
LOG_LEVEL_OPTION = typer.Option(
    LogLevel.warning,
    "--log-level",
    "-l",
    case_sensitive=False,
    help="Log level: debug, info, warning, error.",
)


@app.callback(invoke_without_command=True)
def root_callback(ctx: typer.Context) -> None:
    if ctx.invoked_subcommand is not None:
        return

    console = Console()
    try:
        nisqa_version = version("nisqa")
    except PackageNotFoundError:
        nisqa_version = "unknown"

    console.print(
        Panel(
            (
                f"[bold cyan]Welcome to nisqa v{nisqa_version}[/bold cyan]\n\n"
                "[white]Select the implementations and QPUs able to run a quantum algorithm,\n"
                "dispatch them through capability plugins and rank the outcomes.[/white]"
            ),
            title="[bold green]nisqa CLI[/bold green]",
            border_style="bright_blue",
            expand=False,
        )
    )

    quickstart = Table(
        title="Quick Start", show_header=True, header_style="bold magenta", expand=True
    )
    quickstart.add_column("Workflow", style="bold yellow", ratio=1)
    quickstart.add_column("Command", style="green", ratio=2)
    quickstart.add_row("Inspect a catalog", "nisqa catalog show catalog.json")
    quickstart.add_row("List required inputs", "nisqa params catalog.json shor")
    quickstart.add_row("Select candidates", "nisqa select catalog.json shor -p N=15")
    quickstart.add_row("Dispatch", "nisqa dispatch catalog.json shor-15 ibmq-qasm -p N=15")
    console.print(quickstart)
    console.print("[dim]Use `nisqa --help` for full command documentation.[/dim]")


def _configure_logging(level: LogLevel, *, log_file: Path | None = None) -> None:
    resolved_level = getattr(logging, level.value.upper())

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    root.setLevel(resolved_level)
    formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(resolved_level)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(resolved_level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)


def _to_jsonable(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return {k: _to_jsonable(v) for k, v in asdict(value).items()}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (tuple, list)):
        return [_to_jsonable(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted(_to_jsonable(v) for v in value)
    if isinstance(value, dict):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    return value


def _print_json(payload: object) -> None:
    typer.echo(json.dumps(_to_jsonable(payload), indent=2, sort_keys=True))


def _print_diags(console: Console, diagnostics: list[Diagnostic]) -> bool:
    reporter = DiagnosticReporter(console=console)
    if diagnostics:
        reporter.print(diagnostics)
    return any(d.is_error for d in diagnostics)


def _fail(console: Console, diag: Diagnostic) -> typer.Exit:
    _print_diags(console, [diag])
    return typer.Exit(code=1)


def _guard(console: Console, action: Callable[[], T], *, file: Path | None = None) -> T:
    try:
        return action()
    except NisqaError as exc:
        raise _fail(console, from_error(exc, file=file)) from None
    except KeyError as exc:
        raise _fail(console, unknown_entity("id", str(exc.args[0]), file=file)) from None
    except ValueError as exc:
        raise _fail(console, invalid_input(str(exc), file=file)) from None


def _load_config(console: Console, config: Path | None) -> NisqaConfig:
    config_path = discover_config_path(explicit_config=config)
    if config_path is None:
        LOGGER.debug("No config file found; using defaults")
        return NisqaConfig()
    LOGGER.info("Using config file: %s", config_path)
    return _guard(console, lambda: load_config(config_path), file=config_path)


def _load_catalog(console: Console, path: Path) -> InMemoryCatalog:
    try:
        return load_catalog(path)
    except OSError as exc:
        raise _fail(console, invalid_catalog(f"cannot read catalog: {exc}", file=path)) from None
    except ValueError as exc:
        raise _fail(console, invalid_catalog(str(exc), file=path)) from None


def _open_service(console: Console, catalog_path: Path, config: Path | None) -> SelectionService:
    settings = _load_config(console, config)
    catalog = _load_catalog(console, catalog_path)
    return _guard(console, lambda: build_service(settings, catalog), file=config)


def _parse_params(console: Console, param: list[str]) -> dict[str, str]:
    return _guard(console, lambda: parse_assignments(param))


@catalog_app.command("show", help="List algorithms, implementations and targets of a catalog.")
def catalog_show(
    catalog: Path = typer.Argument(..., help="Path to the catalog JSON file."),
    json_output: bool = JSON_OPTION,
    no_color: bool = NO_COLOR_OPTION,
) -> None:
    console = Console(no_color=no_color)
    loaded = _load_catalog(console, catalog)
    if json_output:
        _print_json(
            {
                "algorithms": list(loaded.find_algorithms()),
                "implementations": list(loaded.find_implementations()),
                "targets": list(loaded.find_targets()),
            }
        )
        return

    impl_table = Table(title="Implementations")
    impl_table.add_column("ID")
    impl_table.add_column("Algorithm")
    impl_table.add_column("Ecosystem")
    impl_table.add_column("Selection Rule")
    impl_table.add_column("Width Rule")
    impl_table.add_column("Depth Rule")
    for impl in loaded.find_implementations():
        impl_table.add_row(
            impl.id,
            impl.algorithm_id,
            impl.ecosystem,
            impl.selection_rule or "-",
            impl.width_rule or "-",
            impl.depth_rule or "-",
        )
    console.print(impl_table)

    target_table = Table(title="Targets")
    target_table.add_column("ID")
    target_table.add_column("Provider")
    target_table.add_column("Qubits", justify="right")
    target_table.add_column("Max Depth", justify="right")
    target_table.add_column("Simulator")
    target_table.add_column("Ecosystems")
    for target in loaded.find_targets():
        max_depth = target.max_depth
        target_table.add_row(
            target.id,
            target.provider,
            str(target.qubit_count),
            "unbounded" if max_depth is None else str(max_depth),
            "yes" if target.simulator else "no",
            ", ".join(sorted(target.ecosystems)),
        )
    console.print(target_table)


@catalog_app.command("check", help="Report rules that reference undeclared parameters.")
def catalog_check(
    catalog: Path = typer.Argument(..., help="Path to the catalog JSON file."),
    no_color: bool = NO_COLOR_OPTION,
) -> None:
    console = Console(no_color=no_color)
    loaded = _load_catalog(console, catalog)
    diagnostics: list[Diagnostic] = []
    for implementation in loaded.find_implementations():
        for kind, names in sorted(undeclared_rule_parameters(loaded, implementation).items()):
            diagnostics.append(undeclared_parameters(implementation.id, kind, names, file=catalog))
    if not diagnostics:
        console.print(f"[green]Catalog OK:[/green] {len(loaded.find_implementations())} implementations")
        return
    _print_diags(console, diagnostics)


@app.command("params", help="List every input parameter an algorithm may need.")
def params(
    catalog: Path = typer.Argument(..., help="Path to the catalog JSON file."),
    algorithm: str = typer.Argument(..., help="Algorithm identifier."),
    config: Path | None = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
    no_color: bool = NO_COLOR_OPTION,
    log_level: LogLevel = LOG_LEVEL_OPTION,
) -> None:
    _configure_logging(log_level)
    console = Console(no_color=no_color)
    service = _open_service(console, catalog, config)
    names = _guard(console, lambda: service.required_parameters(algorithm))
    if json_output:
        _print_json(sorted(names))
        return
    for name in sorted(names):
        console.print(name)


@app.command("select", help="Select implementations and targets for an algorithm and its inputs.")
def select(
    catalog: Path = typer.Argument(..., help="Path to the catalog JSON file."),
    algorithm: str = typer.Argument(..., help="Algorithm identifier."),
    param: list[str] = PARAM_OPTION,
    provider: list[str] = typer.Option(
        [],
        "--provider",
        help="Restrict targets to a provider (repeatable).",
    ),
    no_simulators: bool = typer.Option(False, "--no-simulators", help="Exclude simulator targets."),
    config: Path | None = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
    no_color: bool = NO_COLOR_OPTION,
    log_level: LogLevel = LOG_LEVEL_OPTION,
) -> None:
    _configure_logging(log_level)
    console = Console(no_color=no_color)
    values = _parse_params(console, param)
    service = _open_service(console, catalog, config)
    result = _guard(
        console,
        lambda: service.select(
            algorithm,
            values,
            allowed_providers=provider or None,
            simulators_allowed=not no_simulators,
        ),
    )
    if json_output:
        _print_json(_selection_payload(result))
        return
    _print_selection(console, result)


def _selection_payload(result: SelectionResult) -> dict[str, object]:
    return {
        "entries": [
            {
                "implementation": entry.implementation.id,
                "targets": [target.id for target in entry.targets],
                "qubit_estimate": entry.qubit_estimate,
                "depth_estimate": entry.depth_estimate,
                "estimate_based": entry.estimate_based,
                "circuits": entry.circuits,
            }
            for entry in result.entries
        ],
        "issues": result.issues,
    }


def _print_selection(console: Console, result: SelectionResult) -> None:
    table = Table(title="Selection")
    table.add_column("Implementation")
    table.add_column("Targets")
    table.add_column("Qubits", justify="right")
    table.add_column("Depth", justify="right")
    table.add_column("Basis")
    for entry in result.entries:
        table.add_row(
            entry.implementation.id,
            ", ".join(target.id for target in entry.targets),
            str(entry.qubit_estimate),
            str(entry.depth_estimate),
            "estimate" if entry.estimate_based else "transpiled",
        )
    console.print(table)
    if result.issues:
        issues = Table(title="Dropped")
        issues.add_column("Implementation")
        issues.add_column("Target")
        issues.add_column("Stage")
        issues.add_column("Reason")
        for issue in result.issues:
            issues.add_row(issue.implementation_id, issue.target_id or "-", issue.stage, issue.message)
        console.print(issues)


@app.command("dispatch", help="Dispatch an implementation to a target through its capability plugin.")
def dispatch(
    catalog: Path = typer.Argument(..., help="Path to the catalog JSON file."),
    implementation: str = typer.Argument(..., help="Implementation identifier."),
    target: str = typer.Argument(..., help="Target identifier."),
    param: list[str] = PARAM_OPTION,
    wait: bool = typer.Option(
        True,
        "--wait/--no-wait",
        "-w",
        help="Block until the execution ends; with --no-wait the run stops when this process exits.",
    ),
    timeout: float | None = typer.Option(None, "--timeout", help="Seconds to wait before giving up."),
    config: Path | None = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
    no_color: bool = NO_COLOR_OPTION,
    log_level: LogLevel = LOG_LEVEL_OPTION,
) -> None:
    _configure_logging(log_level)
    console = Console(no_color=no_color)
    values = _parse_params(console, param)
    service = _open_service(console, catalog, config)
    execution_id = _guard(console, lambda: service.dispatch(implementation, target, values))
    if wait and not service.wait(timeout):
        LOGGER.warning("Execution %s still running after %ss", execution_id, timeout)

    record = service.get_execution_status(execution_id)
    if json_output:
        _print_json(record)
        return
    console.print(f"[bold]Execution[/bold] {record.id}: {record.status.value}")
    if record.status_detail:
        console.print(f"  {record.status_detail}")
    if record.result:
        console.print(f"  shots={record.shots} result={record.result}")


@plugins_app.command("list", help="List discovered capability plugins.")
def plugins_list(
    plugin: list[str] = typer.Option(
        [],
        "--plugin",
        help="Load an extra plugin bundle from module:attribute.",
    ),
    config: Path | None = CONFIG_OPTION,
    no_color: bool = NO_COLOR_OPTION,
) -> None:
    console = Console(no_color=no_color)
    settings = _load_config(console, config)
    try:
        registry = CapabilityRegistry.from_discovery(
            bundles=[service_plugin_bundle(settings.plugins.services)],
            module_specs=[*settings.plugins.modules, *plugin],
            entry_points=settings.plugins.entry_points,
        )
    except (ImportError, ValueError) as exc:
        raise _fail(console, invalid_input(f"failed to load plugins: {exc}", file=config)) from None

    table = Table(title="Capability Plugins")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Ecosystems")
    table.add_column("Parameters")
    for registered in registry.list_plugins():
        table.add_row(
            registered.plugin_id,
            registered.display_name,
            ", ".join(sorted(registered.supported_ecosystems())),
            ", ".join(param.name for param in registered.required_parameters()) or "-",
        )
    console.print(table)


@rules_app.command("eval", help="Evaluate a rule against name=value inputs.")
def rules_eval(
    rule: str = typer.Argument(..., help="Rule expression, e.g. 'N > 2 and N % 2 == 1'."),
    param: list[str] = PARAM_OPTION,
    config: Path | None = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
    no_color: bool = NO_COLOR_OPTION,
) -> None:
    console = Console(no_color=no_color)
    values = _parse_params(console, param)
    oracle = build_oracle(_load_config(console, config))
    answer = _guard(console, lambda: oracle.query(rule, values))
    if json_output:
        _print_json({"rule": rule, "result": answer})
        return
    console.print(str(answer).lower() if isinstance(answer, bool) else str(answer))


@ranking_app.command("methods", help="List the supported ranking methods.")
def ranking_methods(no_color: bool = NO_COLOR_OPTION) -> None:
    console = Console(no_color=no_color)
    table = Table(title="Ranking Methods")
    table.add_column("Name")
    table.add_column("Wire Name")
    table.add_column("Description")
    for method in list_methods():
        table.add_row(method.name, method.wire_name, method.description)
    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
