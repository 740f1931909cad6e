"""tasktrack CLI - task completion commands."""

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from tasktrack import __version__
from tasktrack.completion import CompletionOptions, CompletionResult, Outcome, complete_task
from tasktrack.config import ConfigError, load_config
from tasktrack.logs import configure_logging
from tasktrack.validation import run_validation

cli = typer.Typer(
    name="tasktrack",
    help="tasktrack - complete tasks and consolidate their git history",
    no_args_is_help=True,
)
console = Console()


def _version_option_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@cli.callback()
def _cli_callback(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show tasktrack version and exit.",
        is_eager=True,
        callback=_version_option_callback,
    ),
) -> None:
    """Task bookkeeping and git history consolidation."""
    _ = version


def _log_level(project_root: Path, *, verbose: bool, json_output: bool) -> str:
    if not verbose:
        return "ERROR" if json_output else "WARNING"
    try:
        return load_config(project_root).log_level
    except ConfigError:
        return "DEBUG"


def _render_report(result: CompletionResult) -> None:
    data = result.data
    if result.outcome is Outcome.DONE:
        console.print(f"[green]✓ Task {data.get('task_id')} completed[/green]")
    elif result.outcome is Outcome.REJECTED:
        console.print(f"[bold yellow]Refused:[/bold yellow] {result.error}")
    elif result.outcome is Outcome.ROLLED_BACK:
        console.print(f"[bold red]Rolled back:[/bold red] {result.error}")
    else:
        console.print(f"[bold red]Error:[/bold red] {result.error}")

    for message in result.messages:
        console.print(f"  {message}")
    for warning in result.warnings:
        console.print(f"[yellow]⚠ {warning}[/yellow]")

    git = data.get("git", {})
    github = data.get("github", {})
    table = Table(title="Completion summary", show_header=False)
    table.add_column("field", style="cyan")
    table.add_column("value")
    table.add_row("outcome", result.outcome.value)
    table.add_row("task", str(data.get("task_id") or "-"))
    validation = data.get("validation", {})
    if validation.get("skipped"):
        table.add_row("validation", "skipped")
    elif validation.get("checks"):
        table.add_row(
            "validation",
            ", ".join(f"{name}: {summary}" for name, summary in validation["checks"].items()),
        )
    table.add_row("squashed", "yes" if git.get("squashed") else "no")
    if git.get("wip_commit_count"):
        table.add_row("original commits", str(git["wip_commit_count"]))
    if git.get("commit_message"):
        table.add_row("commit message", git["commit_message"])
    if git.get("notes"):
        table.add_row("notes", git["notes"])
    if git.get("branch_merged") is not None:
        table.add_row("merged", "yes" if git["branch_merged"] else "no")
    if github.get("pr_workflow"):
        table.add_row("pushed", "yes" if git.get("pushed") else "no")
        table.add_row("pull request", github.get("pr_url") or "-")
    if git.get("reverted"):
        table.add_row("bookkeeping", "restored")
    console.print(table)


@cli.command(name="complete-task")
def complete_task_cmd(
    no_squash: bool = typer.Option(
        False,
        "--no-squash",
        help="Keep every commit on the task branch",
    ),
    no_branch: bool = typer.Option(
        False,
        "--no-branch",
        help="Skip push, pull request and merge handling",
    ),
    skip_validation: bool = typer.Option(
        False,
        "--skip-validation",
        help="Do not run the pre-flight validation checks",
    ),
    message: str | None = typer.Option(
        None,
        "--message",
        "-m",
        help="Commit message for the safety and squash commits",
    ),
    project_root: Path = typer.Option(
        Path("."),
        "--project-root",
        help="Project root directory",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Print the structured result as JSON",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show progress logging",
    ),
) -> None:
    """Mark the active task completed, consolidate its commits and reconcile the remote."""
    resolved_root = project_root.resolve()
    configure_logging(_log_level(resolved_root, verbose=verbose, json_output=json_output))

    result = complete_task(
        resolved_root,
        CompletionOptions(
            no_squash=no_squash,
            no_branch=no_branch,
            skip_validation=skip_validation,
            message=message,
        ),
    )

    if json_output:
        typer.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _render_report(result)
    raise typer.Exit(result.exit_code)


@cli.command(name="validation-checks")
def validation_checks_cmd(
    project_root: Path = typer.Option(
        Path("."),
        "--project-root",
        help="Project root directory",
    ),
) -> None:
    """Run the configured validation checks and print a JSON report."""
    resolved_root = project_root.resolve()
    configure_logging("ERROR")
    try:
        config = load_config(resolved_root)
    except ConfigError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(1) from exc

    report = run_validation(resolved_root, config)
    typer.echo(json.dumps(report.to_dict(), indent=2))
    raise typer.Exit(0 if report.ready_for_completion else 1)


if __name__ == "__main__":
    cli()
