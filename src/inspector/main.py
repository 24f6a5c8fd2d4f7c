"""The Inspector CLI - lints for Python sources."""
from pathlib import Path
from typing import List, Optional
import typer
from rich.markup import escape
from rich.table import Table

from .analyzer.diagnostics import Level, render_json, render_text
from .analyzer.engine import LintEngine
from .config import ConfigError, LintConfig, __version__, get_config
from .fixer import fix_files
from .rules import get_rules
from .utils.console import console, err_console

app = typer.Typer(
    name="inspector",
    help="Lints for Python sources with optional OpenAI-drafted docstrings",
    add_completion=False
)

OUTPUT_FORMATS = ('text', 'json')


def _fail(message: str) -> None:
    """Print a usage/configuration error and exit with status 2."""
    err_console.print(f"[bold red]Error:[/bold red] {escape(message)}")
    raise typer.Exit(2)


def _version_callback(value: bool):
    if value:
        console.print(f"inspector {__version__}")
        raise typer.Exit()


def _load_lint_config(config: Optional[Path], paths: List[str]) -> LintConfig:
    if config is not None:
        return LintConfig.load(config)
    return LintConfig.discover(Path(paths[0]))


@app.command()
def check(
    paths: Optional[List[str]] = typer.Argument(None, help="Files or directories to lint (default: .)"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Configuration file (inspector.toml or pyproject.toml)"),
    output_format: str = typer.Option("text", "--format", "-f", help="Output format (text, json)"),
    fix: bool = typer.Option(False, "--fix", help="Apply machine-applicable suggestions in place"),
    allow: Optional[List[str]] = typer.Option(None, "--allow", "-A", help="Set a rule to allow (repeatable)"),
    warn: Optional[List[str]] = typer.Option(None, "--warn", "-W", help="Set a rule to warn (repeatable)"),
    deny: Optional[List[str]] = typer.Option(None, "--deny", "-D", help="Set a rule to deny (repeatable)"),
    deny_warnings: bool = typer.Option(False, "--deny-warnings", help="Exit with status 1 when any lint warns"),
):
    """Lint Python files and report diagnostics."""
    paths = paths or ["."]

    if output_format not in OUTPUT_FORMATS:
        _fail(f"unknown format {output_format!r}: expected one of {', '.join(OUTPUT_FORMATS)}")

    missing = [p for p in paths if not Path(p).exists()]
    if missing:
        _fail(f"Path does not exist: {missing[0]}")

    rules = get_rules()
    known = {rule.name for rule in rules}
    for name in [*(allow or []), *(warn or []), *(deny or [])]:
        if name not in known:
            _fail(f"unknown rule `{name}` (see `inspector rules`)")

    try:
        lint_config = _load_lint_config(config, paths).with_overrides(allow or [], warn or [], deny or [])
        engine = LintEngine(rules, lint_config, get_config())
    except ConfigError as e:
        _fail(str(e))

    report = engine.check_paths(paths)

    if output_format == 'json':
        console.print(render_json(report.diagnostics), markup=False, emoji=False)
    else:
        render_text(report.diagnostics, report.sources, console)

        lint_warnings = sum(1 for d in report.diagnostics if d.rule is not None and d.level is Level.WARN)
        errors = report.count(Level.DENY)
        if lint_warnings:
            console.print(f"[bold yellow]warning[/bold yellow]: {lint_warnings} warning(s) emitted")
        if errors:
            console.print(f"[bold red]error[/bold red]: {errors} error(s) emitted")
        if not lint_warnings and not errors:
            console.print(f"[green]✓ {len(report.files)} file(s) checked, no problems found[/green]")

    if fix:
        fixed = fix_files(report.diagnostics, report.sources)
        for path, count in fixed.items():
            err_console.print(f"[green]✓ Fixed {path} ({count} suggestion(s))[/green]")

    failed = report.count(Level.DENY) > 0
    if deny_warnings:
        failed = failed or any(d.rule is not None and d.level is Level.WARN for d in report.diagnostics)
    if failed:
        raise typer.Exit(1)


@app.command("rules")
def list_rules():
    """List the available lints."""
    table = Table(title="Lints", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Default", style="yellow")
    table.add_column("Description")

    for rule in get_rules():
        table.add_row(rule.name, rule.default_level.value, rule.description)

    console.print(table)


@app.callback()
def main(
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True,
                                 help="Show the version and exit"),
):
    """The Inspector - lints for Python sources."""
    pass


if __name__ == "__main__":
    app()
