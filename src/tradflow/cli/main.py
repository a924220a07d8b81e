# Copyright 2025 KTTC AI (https://github.com/kttc-ai)
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Main CLI application entry point for tradflow.

Operator commands: run the API server, set up workflow labels and
inspect translation units from a terminal.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer
from rich.console import Console
from rich.table import Table

from tradflow import __version__
from tradflow.core.lifecycle import label_names, label_state
from tradflow.core.workflow import TranslationWorkflow
from tradflow.github.base import ConfigurationError, TradflowError
from tradflow.utils.config import Settings, configure_logging, load_settings

T = TypeVar("T")

console = Console()

app = typer.Typer(
    name="tradflow",
    help="tradflow - collaborative translation workflow on GitHub",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)

TOKEN_OPTION = typer.Option(
    ..., "--token", "-t", envvar="GITHUB_TOKEN", help="GitHub token (or full Authorization value)"
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"tradflow version: [bold cyan]{__version__}[/bold cyan]")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(  # noqa: ARG001 - Used by Typer callback
        False,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """
    tradflow - collaborative translation workflow on GitHub.

    Each translation is a branch and a pull request; review stages are
    pull request labels.
    """


def authorization_header(token: str) -> str:
    """Authorization value for a bare token; values with a scheme pass through."""
    token = token.strip()
    if " " in token:
        return token
    return f"Bearer {token}"


def _load_settings() -> Settings:
    try:
        settings = load_settings()
    except ConfigurationError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(code=2) from e
    configure_logging(settings.log_level)
    return settings


def _run(
    operation: Callable[[TranslationWorkflow], Awaitable[T]], settings: Settings | None = None
) -> T:
    """Run one workflow operation with a fresh client, reporting failures."""
    settings = settings or _load_settings()

    async def runner() -> T:
        workflow = TranslationWorkflow.from_settings(settings)
        try:
            return await operation(workflow)
        finally:
            await workflow.close()

    try:
        return asyncio.run(runner())
    except TradflowError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1) from e


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to listen on"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
) -> None:
    """Run the HTTP API server."""
    from tradflow.webui.server import run_server

    _load_settings()
    run_server(host=host, port=port, reload=reload)


@app.command("setup-labels")
def setup_labels(token: str = TOKEN_OPTION) -> None:
    """Create the workflow labels in the repository (idempotent)."""
    credential = authorization_header(token)
    result = _run(lambda workflow: workflow.setup_labels(credential))

    if result.created_labels:
        for name in result.created_labels:
            console.print(f"[green]✓[/green] Created label [bold]{name}[/bold]")
    else:
        console.print("[cyan]ℹ[/cyan] All workflow labels already exist")


@app.command()
def units(token: str = TOKEN_OPTION) -> None:
    """List translation units and their workflow state."""
    credential = authorization_header(token)
    settings = _load_settings()
    pull_requests = _run(lambda workflow: workflow.list_translation_units(credential), settings)

    table = Table(title=f"Translation units on {settings.repository_main_branch}")
    table.add_column("PR", justify="right", style="cyan")
    table.add_column("Title")
    table.add_column("Branch")
    table.add_column("State")
    table.add_column("Labels", style="dim")

    for pull_request in pull_requests:
        names = label_names(pull_request)
        unit_state = label_state(names, settings.workflow_labels)
        if pull_request.get("state") == "closed":
            state_text = "merged" if pull_request.get("merged_at") else "closed"
        else:
            state_text = unit_state.value
        table.add_row(
            f"#{pull_request.get('number')}",
            str(pull_request.get("title", "")),
            str((pull_request.get("head") or {}).get("ref", "")),
            state_text,
            ", ".join(names),
        )

    console.print(table)


@app.command()
def files(
    branch: str = typer.Option(..., "--branch", "-b", help="Translation branch"),
    at_creation: bool = typer.Option(
        False, "--at-creation", help="Resolve at the branch's merge-base with the main branch"
    ),
    token: str = TOKEN_OPTION,
) -> None:
    """Show the translatable files resolved for a branch."""
    credential = authorization_header(token)
    if at_creation:
        entries = _run(lambda workflow: workflow.get_files_at_branch_creation(branch, credential))
    else:
        entries = _run(lambda workflow: workflow.get_files(branch, credential))

    table = Table(title=f"Files on {branch}" + (" (at creation)" if at_creation else ""))
    table.add_column("Category", style="cyan")
    table.add_column("Name")
    table.add_column("Original")
    table.add_column("Translated")
    for entry in entries:
        table.add_row(
            entry.category, entry.display_name, entry.original_path, entry.translated_path
        )

    console.print(table)


@app.command()
def state(
    branch: str = typer.Option(..., "--branch", "-b", help="Translation branch"),
    token: str = TOKEN_OPTION,
) -> None:
    """Show the workflow state of one translation unit."""
    credential = authorization_header(token)
    unit = _run(lambda workflow: workflow.get_state(branch, credential))

    approval = "[green]approved[/green]" if unit.approved else "not approved"
    console.print(
        f"[bold]{unit.branch}[/bold] (PR #{unit.pull_request}): "
        f"[cyan]{unit.state.value}[/cyan], {approval}"
    )


if __name__ == "__main__":
    app()
