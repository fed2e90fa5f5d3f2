from __future__ import annotations

from rich.console import Console
from rich.text import Text

from nisqa.diag.diagnostic import Diagnostic, Severity


class DiagnosticReporter:
    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(stderr=True)

    def render_text(self, diag: Diagnostic) -> str:
        lines = [
            f"{diag.severity.value}[{diag.code}]: {diag.message}",
            f"  --> {diag.origin}",
        ]
        lines.extend(f"   = note: {n}" for n in diag.notes)
        lines.extend(f"   = help: {h}" for h in diag.help)
        return "\n".join(lines)

    def print(self, diagnostics: list[Diagnostic]) -> None:
        ordered = sorted(enumerate(diagnostics), key=lambda item: (item[1].origin, item[0]))
        for _, diag in ordered:
            style = self._severity_style(diag.severity)
            self.console.print(Text(self.render_text(diag), style=style))
            self.console.print()
        if diagnostics:
            self.console.print(self.render_summary(diagnostics))

    def render_summary(self, diagnostics: list[Diagnostic]) -> str:
        errors = sum(1 for d in diagnostics if d.severity == Severity.ERROR)
        warnings = sum(1 for d in diagnostics if d.severity == Severity.WARNING)
        infos = sum(1 for d in diagnostics if d.severity == Severity.INFO)
        if errors:
            return (
                f"aborting due to {errors} error(s), {warnings} warning(s), {infos} info message(s)"
            )
        return f"finished with {errors} error(s), {warnings} warning(s), {infos} info message(s)"

    def _severity_style(self, severity: Severity) -> str:
        if severity == Severity.ERROR:
            return "red"
        if severity == Severity.WARNING:
            return "yellow"
        return "cyan"
