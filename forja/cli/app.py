"""
Aplicación CLI de forja.

Solo compone comandos; la lógica vive en core, declarative y providers.

Códigos de salida:
    0  convergido sin fallos
    1  alguna acción o handler falló
    2  error fatal antes de ejecutar (validación, configuración, ciclo, lock)
"""

import json
import logging
from contextlib import nullcontext
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from forja import __version__
from forja.cli.render import render_facts, render_plan, render_report
from forja.config import Settings, load_env_file
from forja.core.engine import Engine
from forja.core.errors import CyclicDependencyError, ForjaError
from forja.core.project.models import Declaration
from forja.core.runtime.lock import RunLock
from forja.core.runtime.masking import mask_sensitive_data
from forja.core.runtime.resolver import lock_path, reports_dir
from forja.declarative.loader import DeclarationLoader
from forja.providers import CommandRunner, TemplateRenderer, default_registry

EXIT_FATAL = 2

app = typer.Typer(
    name="forja",
    help="forja - aprovisionamiento declarativo de un host",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger("forja")

DeclarationArg = typer.Argument(..., help="Archivo YAML de la declaración", show_default=False)
VerboseOpt = typer.Option(False, "--verbose", "-v", help="Log detallado (DEBUG)")
JsonOpt = typer.Option(False, "--json", help="Salida JSON en lugar de tablas")


@dataclass
class Context:
    """Todo lo necesario para una ejecución ya preparada."""
    settings: Settings
    declaration: Declaration
    engine: Engine
    secrets: List[str]

    def mask(self, text: str) -> str:
        return mask_sensitive_data(text or "", self.secrets)

    def dumps(self, data: Dict[str, Any]) -> str:
        # en JSON un secreto con comillas, barras o controles aparece escapado
        escaped = [json.dumps(s, ensure_ascii=False)[1:-1] for s in self.secrets if s]
        text = json.dumps(data, indent=2, ensure_ascii=False, default=str)
        return mask_sensitive_data(text, [*self.secrets, *escaped])


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False, rich_tracebacks=True)],
        force=True,
    )


def _fatal(error: ForjaError) -> None:
    title = "Dependencia cíclica" if isinstance(error, CyclicDependencyError) else type(error).__name__
    err_console.print(Panel.fit(f"[red]{error}[/red]", title=f"❌ {title}", border_style="red"))
    raise typer.Exit(EXIT_FATAL)


def _prepare(
    path: Path,
    verbose: bool,
    continue_on_error: bool = False,
    force_handlers: bool = False,
) -> Context:
    """Carga .env, ajustes y declaración; construye el engine con los adapters del host."""
    load_env_file(near=path)
    settings = Settings.from_env()
    settings = settings.model_copy(update={
        "continue_on_error": continue_on_error or settings.continue_on_error,
        "force_handlers": force_handlers or settings.force_handlers,
        "log_level": "DEBUG" if verbose else settings.log_level,
    })
    _setup_logging(settings.log_level)

    loader = DeclarationLoader(path)
    declaration = loader.load()
    secrets = sorted(loader.secrets)

    runner = CommandRunner(timeout=settings.command_timeout, secrets=secrets)
    registry = default_registry(settings, runner=runner, renderer=TemplateRenderer(declaration.vars))
    engine = Engine(
        registry,
        continue_on_error=settings.continue_on_error,
        force_handlers=settings.force_handlers,
    )
    return Context(settings, declaration, engine, secrets)


def _save_report(ctx: Context, text: str, target: Optional[Path]) -> None:
    """Guarda el reporte JSON en --report o, si hay lock, en el directorio de reportes."""
    if target is None:
        if not ctx.settings.use_lock:
            return
        target = reports_dir(ctx.settings.state_root) / f"{datetime.now():%Y%m%d-%H%M%S}.json"
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text + "\n")
    except OSError as e:
        logger.warning("No se pudo guardar el reporte en %s: %s", target, e)
        return
    logger.info("Reporte guardado en %s", target)


@app.command()
def validate(
    declaration: Path = DeclarationArg,
    verbose: bool = VerboseOpt,
):
    """Valida la declaración (estructura, referencias, ciclos y atributos) sin tocar el host"""
    try:
        ctx = _prepare(declaration, verbose)
        ordered = ctx.engine.validate(ctx.declaration)
    except ForjaError as e:
        _fatal(e)
        return
    console.print(Panel.fit(
        f"[bold green]✅ Declaración válida[/bold green]\n"
        f"[dim]{ctx.declaration.name}[/dim]\n\n"
        f"[bold]Recursos:[/bold] {len(ordered)}\n"
        f"[bold]Handlers:[/bold] {len(ctx.declaration.handlers)}\n"
        f"[bold]Orden:[/bold] {' → '.join(r.id for r in ordered)}",
        border_style="green",
    ))


@app.command()
def facts(
    declaration: Path = DeclarationArg,
    as_json: bool = JsonOpt,
    verbose: bool = VerboseOpt,
):
    """Muestra el estado real del host para cada recurso declarado (solo lectura)"""
    try:
        ctx = _prepare(declaration, verbose)
        snapshot = ctx.engine.gather(ctx.declaration)
    except ForjaError as e:
        _fatal(e)
        return
    if as_json:
        typer.echo(ctx.dumps(snapshot.to_dict()))
        return
    render_facts(console, snapshot, ctx.mask)


@app.command()
def plan(
    declaration: Path = DeclarationArg,
    as_json: bool = JsonOpt,
    show_all: bool = typer.Option(False, "--all", help="Incluir recursos sin cambios"),
    verbose: bool = VerboseOpt,
):
    """Calcula qué cambiaría sin aplicar nada (modo check)"""
    try:
        ctx = _prepare(declaration, verbose)
        result = ctx.engine.plan(ctx.declaration)
    except ForjaError as e:
        _fatal(e)
        return
    if as_json:
        typer.echo(ctx.dumps({
            "declaration": ctx.declaration.name,
            "converged": result.converged,
            "unknown": dict(result.snapshot.unknown),
            "actions": [a.to_dict() for a in result.actions],
        }))
        return
    render_plan(console, result, ctx.mask, show_noop=show_all)


@app.command()
def apply(
    declaration: Path = DeclarationArg,
    continue_on_error: bool = typer.Option(
        False, "--continue-on-error", help="Seguir con las acciones independientes tras un fallo"
    ),
    force_handlers: bool = typer.Option(
        False, "--force-handlers", help="Disparar handlers notificados aunque la ejecución aborte"
    ),
    no_lock: bool = typer.Option(False, "--no-lock", help="No tomar el lock del host"),
    report: Optional[Path] = typer.Option(None, "--report", help="Guardar el reporte JSON en esta ruta"),
    as_json: bool = JsonOpt,
    verbose: bool = VerboseOpt,
):
    """Converge el host al estado declarado"""
    try:
        ctx = _prepare(declaration, verbose, continue_on_error, force_handlers)
        use_lock = ctx.settings.use_lock and not no_lock
        if not use_lock:
            ctx.settings = ctx.settings.model_copy(update={"use_lock": False})
        lock = RunLock(lock_path(ctx.settings.state_root)) if use_lock else nullcontext()
        with lock:
            result = ctx.engine.run(ctx.declaration)
    except ForjaError as e:
        _fatal(e)
        return

    text = ctx.dumps(result.to_dict())
    _save_report(ctx, text, report)
    if as_json:
        typer.echo(text)
    else:
        render_report(console, result, ctx.mask)
    raise typer.Exit(result.exit_code)


@app.command()
def version():
    """Muestra la versión de forja"""
    console.print(Panel.fit(
        "[bold cyan]forja[/bold cyan]\n"
        "[dim]Aprovisionamiento declarativo de un host[/dim]\n\n"
        f"[bold]Versión:[/bold] {__version__}",
        border_style="cyan",
    ))


def main():
    app()
