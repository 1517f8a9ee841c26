import json
import logging
import os
from pathlib import Path
from typing import List, Optional

import jinja2
import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from typing_extensions import Annotated

from . import __version__
from .config.loader import load_config
from .error.exceptions import TmplstackError
from .logging.config import LogConfig
from .templates.manager import TemplateManager
from .templates.sources import normalize_extensions, scan_bundle, write_bundle

# Load environment variables
load_dotenv()

app = typer.Typer(
    name="tmplstack",
    help="Bundle, inspect and render layout-inheriting template sets"
)
console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger(__name__)


def _split_extensions(extensions: str) -> List[str]:
    return list(normalize_extensions([e.strip() for e in extensions.split(",") if e.strip()]))


def _fail(error: Exception) -> None:
    err_console.print(f"[red]Error:[/red] {error}")
    raise typer.Exit(code=1)


# Logging options from the callback; the level may be refined by configuration.
_logging = {"level": None, "file": None, "json": False}


def _configure_logging(log_level: str) -> None:
    LogConfig(
        log_level=log_level,
        log_file=_logging["file"],
        log_format="%(message)s",
        json_logging=_logging["json"],
        handler=None if _logging["json"] else RichHandler(console=err_console, show_path=False),
    ).configure()


@app.callback()
def main(
    log_level: Annotated[Optional[str], typer.Option("--log-level", help="Logging level [default: config or WARNING]")] = os.getenv("LOG_LEVEL"),
    log_file: Annotated[Optional[Path], typer.Option("--log-file", help="Also write logs to this file")] = None,
    json_logs: Annotated[bool, typer.Option("--json-logs", help="Log JSON records instead of rich output")] = False,
):
    """Layout-inheriting template sets."""
    _logging.update(level=log_level, file=log_file, json=json_logs)
    try:
        _configure_logging(log_level or "WARNING")
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--log-level")


@app.command("version")
def version_command():
    """Display version information."""
    console.print(f"tmplstack {__version__}")


@app.command("bundle")
def bundle_command(
    root: Annotated[Path, typer.Argument(help="Template root directory")],
    output: Annotated[Path, typer.Option("--output", "-o", help="Bundle file to write")] = Path("templates.bundle.json"),
    extensions: Annotated[str, typer.Option("--extensions", "-e", help="Included file extensions")] = "html,tmpl",
):
    """Bundle every template under ROOT into a single JSON file."""
    try:
        logger.debug(f"Bundling templates under {root} with extensions {extensions}")
        files = scan_bundle(root, _split_extensions(extensions))
        write_bundle(output, files)
    except TmplstackError as e:
        _fail(e)
    console.print(f"Bundled {len(files)} templates into {output}")


def _manager(
    root: Optional[Path],
    bundle: Optional[Path],
    config_path: Optional[Path],
) -> TemplateManager:
    config = load_config(str(config_path) if config_path else None)
    updates = {}
    if root is not None:
        updates["template_dir"] = root
    if bundle is not None:
        updates["bundle_path"] = bundle
    config = config.model_copy(update=updates)
    if not config.template_dir and not config.bundle_path:
        raise typer.BadParameter("a template root (--root) or bundle (--bundle) is required")
    if _logging["level"] is None:
        _configure_logging(config.log_level)
    return TemplateManager.from_config(config)


@app.command("list")
def list_command(
    root: Annotated[Optional[Path], typer.Option("--root", "-r", help="Template root directory")] = None,
    bundle: Annotated[Optional[Path], typer.Option("--bundle", "-b", help="Template bundle file")] = None,
    config_path: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file")] = None,
):
    """List templates and the layout each one extends."""
    try:
        manager = _manager(root, bundle, config_path)
    except TmplstackError as e:
        _fail(e)

    table = Table(title="Templates")
    table.add_column("Name", style="cyan")
    table.add_column("Extends", style="green")
    table.add_column("Status")
    failures = manager.failures()
    for name, file in manager.template_files().items():
        status = "[red]failed[/red]" if name in failures else "ok"
        table.add_row(name, file.layout or "-", status)
    console.print(table)


@app.command("render")
def render_command(
    name: Annotated[str, typer.Argument(help="Template name")],
    pairs: Annotated[Optional[List[str]], typer.Argument(help="KEY VALUE pairs bound as template data")] = None,
    root: Annotated[Optional[Path], typer.Option("--root", "-r", help="Template root directory")] = None,
    bundle: Annotated[Optional[Path], typer.Option("--bundle", "-b", help="Template bundle file")] = None,
    config_path: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file")] = None,
    data: Annotated[Optional[str], typer.Option("--data", "-d", help="JSON value bound as template data")] = None,
):
    """Render template NAME to stdout."""
    try:
        manager = _manager(root, bundle, config_path)
        if data is not None:
            args = [json.loads(data)]
        else:
            args = list(pairs or [])
        output = manager.render(name, *args)
    except json.JSONDecodeError as e:
        _fail(f"invalid --data JSON: {e}")
    except (TmplstackError, jinja2.TemplateError) as e:
        _fail(e)
    # Rich markup would mangle template output.
    typer.echo(output, nl=False)


if __name__ == "__main__":
    app()
