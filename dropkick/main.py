import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

import typer
from InquirerPy import inquirer
from rich.console import Console
from rich.panel import Panel

from .browser import ExtractRequest, resolve_selections, run_browser
from .checkout import CheckoutExecutor
from .errors import DropkickError, StoreEmptyError
from .interpolation import Interpolator
from .models import CheckoutResult, ProjectConfig, SourceFile
from .project_config import (
    CONFIG_FILENAME,
    load_project_config,
    make_context_provider,
    save_project_config,
)
from .template_store import TEMPLATES_ENV_VAR, TemplateStore, default_templates_root

app = typer.Typer(help="Browse project templates and check files out into the current directory.")

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Options shared by every command."""
    templates: Path
    force: bool = False
    name: Optional[str] = None
    strict: Optional[bool] = None


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def fail(message: str) -> None:
    """Print an error and exit with a non-zero status."""
    typer.echo(f"❌ {message}", err=True)
    raise typer.Exit(code=1)


def load_config_or_fail() -> Optional[ProjectConfig]:
    try:
        return load_project_config(Path.cwd() / CONFIG_FILENAME)
    except DropkickError as e:
        fail(str(e))


def build_interpolator(settings: Settings, config: Optional[ProjectConfig]) -> Interpolator:
    strict = settings.strict
    if strict is None and config is not None and config.strict is not None:
        strict = config.strict
    return Interpolator(strict=True if strict is None else strict)


def confirm_overwrite_callback(force: bool) -> Optional[Callable[[Path], bool]]:
    """Decide how existing files are handled.

    --force confirms every overwrite; on a terminal the user is asked per
    file; otherwise overwrites are refused.
    """
    if force:
        return lambda path: True
    if sys.stdin.isatty():
        return lambda path: inquirer.confirm(
            message=f"{path} already exists. Overwrite?",
            default=False
        ).execute()
    return None


def run_checkout(settings: Settings,
                 config: Optional[ProjectConfig],
                 sources: List[SourceFile],
                 confirm_overwrite: Optional[Callable[[Path], bool]]) -> CheckoutResult:
    target_dir = Path.cwd()
    template = sources[0].template if sources else None
    executor = CheckoutExecutor(
        target_dir,
        interpolator=build_interpolator(settings, config),
        context_provider=make_context_provider(config, name=settings.name, template=template),
        confirm_overwrite=confirm_overwrite,
    )
    return executor.checkout(sources)


def report(result: CheckoutResult) -> None:
    target_dir = Path.cwd()
    for path in result.written:
        relative = path.relative_to(target_dir) if path.is_relative_to(target_dir) else path
        note = " (overwritten)" if path in result.overwritten else ""
        typer.echo(f"✅ {relative}{note}")
    typer.echo(f"📦 Checked out {len(result.written)} file(s)")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    checkout: Optional[str] = typer.Option(
        None, "--checkout", "-c", help="Check out a single file: <template>/<file>"
    ),
    kicklet: Optional[str] = typer.Option(
        None, "--kicklet", "-k", help="Check out a kicklet: <name> or <template>/<name>"
    ),
    templates: Optional[Path] = typer.Option(
        None, "--templates", "-T", envvar=TEMPLATES_ENV_VAR,
        help="Template store directory (default: ~/.bundlegem/templates)"
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing files"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Project name used for interpolation"),
    strict: Optional[bool] = typer.Option(
        None, "--strict/--lenient", help="Fail on, or keep, placeholders without a value"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Browse templates interactively, or check out files directly."""
    configure_logging(verbose)
    settings = Settings(
        templates=templates or default_templates_root(),
        force=force,
        name=name,
        strict=strict,
    )
    ctx.obj = settings

    if ctx.invoked_subcommand is not None:
        return

    if checkout and kicklet:
        fail("Use either --checkout or --kicklet, not both.")

    store = TemplateStore(settings.templates)
    config = load_config_or_fail()

    if checkout:
        checkout_file(settings, store, config, checkout)
    elif kicklet:
        checkout_kicklet(settings, store, config, kicklet)
    else:
        browse(settings, store, config)


def checkout_file(settings: Settings, store: TemplateStore, config: Optional[ProjectConfig], reference: str) -> None:
    """Handle --checkout."""
    try:
        source = store.resolve_file(reference)
        result = run_checkout(settings, config, [source], confirm_overwrite_callback(settings.force))
    except DropkickError as e:
        fail(str(e))
    report(result)


def checkout_kicklet(settings: Settings, store: TemplateStore, config: Optional[ProjectConfig], name: str) -> None:
    """Handle --kicklet."""
    preferred = config.template if config else None
    try:
        kicklet = store.find_kicklet(name, preferred_template=preferred)
        logger.debug("Kicklet %s: %s", kicklet.qualified_name, ", ".join(kicklet.files))
        result = run_checkout(settings, config, kicklet.resolve(), confirm_overwrite_callback(settings.force))
    except DropkickError as e:
        fail(str(e))
    typer.echo(f"⚡ Kicklet {kicklet.qualified_name}")
    report(result)


def browse(settings: Settings, store: TemplateStore, config: Optional[ProjectConfig]) -> None:
    """Launch the interactive browser."""
    if not store.root.is_dir():
        fail(f"Template store not found: {store.root}")

    def extract(request: ExtractRequest) -> str:
        sources = resolve_selections(store, request.selections)
        confirm = (lambda path: True) if request.overwrite or settings.force else None
        result = run_checkout(settings, config, sources, confirm)
        return f"✅ Checked out {len(result.written)} file(s) into {Path.cwd()}"

    run_browser(store, Path.cwd(), extract)
    typer.echo("👋 Goodbye!")


@app.command("list")
def list_templates(ctx: typer.Context):
    """List templates and their kicklets."""
    settings: Settings = ctx.obj
    store = TemplateStore(settings.templates)
    console = Console()

    try:
        templates = store.scan()
    except StoreEmptyError as e:
        typer.echo(f"📁 {e}")
        return
    except DropkickError as e:
        fail(str(e))

    console.print(Panel.fit(f"📚 Templates in {store.root}", style="bold cyan"))
    for template in templates:
        files = template.files()
        console.print(f"[bold]{template.name}[/bold] [dim]({len(files)} files)[/dim]")
        try:
            kicklets = template.kicklets()
        except DropkickError as e:
            console.print(f"   [red]{e}[/red]")
            continue
        for kicklet in kicklets:
            console.print(f"   [magenta]⚡ {kicklet.name}[/magenta]: {', '.join(kicklet.files)}")


@app.command("init")
def init(ctx: typer.Context):
    """Create a .dropkickrc for the current project."""
    settings: Settings = ctx.obj
    config_path = Path.cwd() / CONFIG_FILENAME
    typer.echo("🚀 Let's set up Dropkick for this project.")

    if config_path.exists():
        overwrite = inquirer.confirm(
            message=f"{CONFIG_FILENAME} already exists. Overwrite?",
            default=False
        ).execute()
        if not overwrite:
            typer.echo("❌ Setup cancelled.")
            return

    name = inquirer.text(
        message="Project name:",
        default=settings.name or Path.cwd().name
    ).execute()

    template_names = []
    try:
        template_names = [template.name for template in TemplateStore(settings.templates).iter_templates()]
    except DropkickError as e:
        logger.debug("Template store unavailable: %s", e)

    template = None
    if template_names:
        choice = inquirer.select(
            message="Default template for kicklets:",
            choices=["(none)"] + template_names,
            default="(none)"
        ).execute()
        template = None if choice == "(none)" else choice

    prefix = inquirer.text(
        message="Name prefix to strip for unprefixed names (optional):",
        default=""
    ).execute()

    strict = inquirer.confirm(
        message="Fail on placeholders without a value?",
        default=True
    ).execute()

    config = ProjectConfig(
        name=name.strip() or None,
        template=template,
        prefix=prefix.strip(),
        strict=strict,
    )
    save_project_config(config, config_path)
    typer.echo(f"✅ Configuration saved to {CONFIG_FILENAME}")
