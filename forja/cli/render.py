"""
Presentación con rich: hechos, plan y reporte de ejecución.

Todo texto que puede contener valores de la declaración pasa por `mask`.
"""

from typing import Any, Callable, Dict

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from forja.core.engine import Plan
from forja.core.project.models import ActionStatus, ActionVerb
from forja.core.runtime.report import HandlerStatus, RunReport
from forja.core.runtime.state import FactSnapshot

Mask = Callable[[str], str]

_VERB_STYLE = {
    ActionVerb.CREATE: "green",
    ActionVerb.MODIFY: "yellow",
    ActionVerb.REMOVE: "red",
    ActionVerb.NOOP: "dim",
}
_STATUS_STYLE = {
    ActionStatus.APPLIED: "green",
    ActionStatus.SKIPPED: "dim",
    ActionStatus.FAILED: "bold red",
    ActionStatus.NOT_RUN: "yellow",
}
_HANDLER_STYLE = {
    HandlerStatus.FIRED: "green",
    HandlerStatus.FAILED: "bold red",
    HandlerStatus.NOT_TRIGGERED: "dim",
    HandlerStatus.NOT_RUN: "yellow",
}


def _short(value: Any, limit: int = 60) -> str:
    text = repr(value) if not isinstance(value, str) else value
    text = text.replace("\n", "⏎")
    return text if len(text) <= limit else text[: limit - 1] + "…"


def _format_attributes(attributes: Dict[str, Any]) -> str:
    return ", ".join(f"{k}={_short(v, 40)}" for k, v in attributes.items())


def render_facts(console: Console, snapshot: FactSnapshot, mask: Mask) -> None:
    table = Table(title="Hechos del host", show_header=True, header_style="bold cyan")
    table.add_column("Recurso", style="cyan")
    table.add_column("Estado observado", style="green")
    for resource_id in snapshot:
        if snapshot.is_unknown(resource_id):
            detail = f"[yellow]desconocido: {mask(snapshot.unknown[resource_id])}[/yellow]"
        else:
            observed = snapshot.get(resource_id)
            detail = "[dim]ausente[/dim]" if observed is None else mask(_format_attributes(dict(observed)))
        table.add_row(resource_id, detail)
    console.print(table)


def render_plan(console: Console, plan: Plan, mask: Mask, show_noop: bool = False) -> None:
    table = Table(title="Plan de acciones", show_header=True, header_style="bold cyan")
    table.add_column("#", style="cyan", width=4)
    table.add_column("Recurso", style="cyan")
    table.add_column("Acción")
    table.add_column("Cambios", style="white")
    for i, action in enumerate(plan.actions, 1):
        if action.is_noop and not show_noop:
            continue
        style = _VERB_STYLE[action.verb]
        changes = "\n".join(
            f"{d.field}: {_short(d.actual)} → {_short(d.desired)}" for d in action.diff
        )
        verb = action.verb.value + (" (?)" if action.unknown else "")
        table.add_row(str(i), action.resource_id, f"[{style}]{verb}[/{style}]", mask(changes))

    if plan.converged:
        console.print(Panel.fit("[green]✅ El host ya converge: no hay cambios[/green]", border_style="green"))
        return
    console.print(table)
    console.print(
        f"\n[bold]{len(plan.changes)}[/bold] cambios de {len(plan.actions)} recursos"
    )
    if plan.snapshot.unknown:
        console.print(f"[yellow]⚠️ {len(plan.snapshot.unknown)} recursos con estado desconocido[/yellow]")


def render_report(console: Console, report: RunReport, mask: Mask) -> None:
    table = Table(title="Resultado de la ejecución", show_header=True, header_style="bold cyan")
    table.add_column("Recurso", style="cyan")
    table.add_column("Acción")
    table.add_column("Estado")
    table.add_column("Detalle", style="white")
    for result in report.actions:
        style = _STATUS_STYLE[result.status]
        table.add_row(
            result.resource_id,
            result.action.verb.value,
            f"[{style}]{result.status.value}[/{style}]",
            mask(result.message),
        )
    console.print(table)

    if report.handlers:
        handlers = Table(title="Handlers", show_header=True, header_style="bold cyan")
        handlers.add_column("Handler", style="cyan")
        handlers.add_column("Estado")
        handlers.add_column("Notificado por", style="white")
        handlers.add_column("Detalle", style="white")
        for result in report.handlers:
            style = _HANDLER_STYLE[result.status]
            handlers.add_row(
                result.name,
                f"[{style}]{result.status.value}[/{style}]",
                ", ".join(result.triggered_by),
                mask(result.message),
            )
        console.print(handlers)

    counts = report.summary()
    summary = (
        f"[green]cambiados: {counts['applied']}[/green]  "
        f"[dim]satisfechos: {counts['skipped']}[/dim]  "
        f"[red]fallidos: {counts['failed']}[/red]  "
        f"[yellow]no ejecutados: {counts['not-run']}[/yellow]"
    )
    if report.exit_code == 0:
        console.print(Panel.fit(f"[bold green]✅ Convergido[/bold green]\n{summary}", border_style="green"))
    else:
        title = "❌ Ejecución abortada" if report.aborted else "❌ Ejecución con fallos"
        console.print(Panel.fit(f"[bold red]{title}[/bold red]\n{summary}", border_style="red"))
