# fitai_pipeline/cli.py
"""
CLI interface for fitai-pipeline.

Thin presentation layer over the tools/ service layer.
All commands delegate to the same functions that MCP wraps.
"""

import asyncio
import json
from pathlib import Path

import typer

app = typer.Typer(
    name="fitai-pipeline",
    help="Catalog-grounded workout and meal plan generation using local LLMs.",
    no_args_is_help=True,
)

DEFAULT_OWNER = "local"


def _run(coro):
    """Run async function from sync CLI context."""
    return asyncio.run(coro)


async def _get_lifecycle(with_catalogs: bool = True):
    """
    Build a ServerLifecycle without starting the sweep or signal handlers.

    Read-only commands skip catalog loading so they work even when a catalog
    file is missing.
    """
    from fitai_pipeline.background.lifecycle import ServerLifecycle
    from fitai_pipeline.config.loader import get_db_path, load_config

    lifecycle = ServerLifecycle(
        str(get_db_path()),
        config=load_config(),
        catalogs=None if with_catalogs else {},
    )
    await lifecycle.initialize()
    return lifecycle


def _status_color(status: str) -> str:
    """Return ANSI color for job status."""
    colors = {
        "completed": typer.colors.GREEN,
        "processing": typer.colors.YELLOW,
        "pending": typer.colors.CYAN,
        "failed": typer.colors.RED,
        "expired": typer.colors.RED,
    }
    return colors.get(status, typer.colors.WHITE)


def _read_params(params: str | None, params_file: Path | None):
    if params and params_file:
        typer.echo("Error: pass either --params or --file, not both", err=True)
        raise typer.Exit(2)
    if params_file:
        import yaml

        # YAML is a superset of JSON, so both file formats load here
        return yaml.safe_load(params_file.read_text(encoding="utf-8"))
    return params or "{}"


def _print_status(result: dict) -> None:
    status = result["status"]
    typer.echo(f"Job:      {result['job_id']}")
    typer.echo(f"Kind:     {result['kind']}")
    typer.echo(typer.style(f"Status:   {status}", fg=_status_color(status)))
    typer.echo(f"Attempts: {result['attempts']}")
    if result.get("cache_source"):
        typer.echo(f"Cache:    {result['cache_source']}")
    if result.get("message"):
        typer.echo(f"Message:  {result['message']}")
    if result.get("error"):
        error = result["error"]
        typer.echo(
            typer.style(f"Error:    [{error['code']}] {error['message']}", fg=typer.colors.RED)
        )


@app.command()
def submit(
    kind: str = typer.Argument(..., help="workout_plan or meal_plan"),
    params: str = typer.Option(None, "--params", "-p", help="Request parameters as JSON"),
    params_file: Path = typer.Option(
        None, "--file", "-f", help="JSON/YAML file with request parameters", exists=True
    ),
    owner: str = typer.Option(DEFAULT_OWNER, "--owner", "-o", help="Owner reference"),
    regenerate: bool = typer.Option(False, "--regenerate", help="Ignore the cached result"),
    detach: bool = typer.Option(False, "--detach", "-d", help="Queue only, leave it to the sweep"),
):
    """Submit a generation job and (unless --detach) process it right away."""
    from fastmcp.exceptions import ToolError
    from rich.console import Console
    from rich.status import Status

    from fitai_pipeline.tools.job_status import get_job_status
    from fitai_pipeline.tools.submit_job import submit_generation_job

    input_params = _read_params(params, params_file)
    console = Console(stderr=True)

    async def _submit():
        lifecycle = await _get_lifecycle()
        orchestrator = lifecycle.orchestrator
        try:
            submitted = await submit_generation_job(
                owner,
                kind,
                input_params,
                orchestrator=orchestrator,
                regenerate=regenerate,
                process_inline=False,
            )
            if detach or submitted["cached"]:
                return submitted, None

            with Status("[dim]Generating plan...[/dim]", console=console, spinner="dots"):
                await orchestrator.process_job(submitted["job_id"])
            final = await get_job_status(submitted["job_id"], owner, orchestrator=orchestrator)
            return submitted, final
        finally:
            await lifecycle.store.close()

    try:
        submitted, final = _run(_submit())
    except ToolError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    job_id = submitted["job_id"]
    if detach:
        typer.echo(f"Queued job {job_id}. Run 'fitai-pipeline sweep' to process it.")
        return

    if final is None:
        console.print(f"[green]✓ Served from cache[/green]  job: {job_id}")
        return

    if final["status"] == "completed":
        console.print(f"[green]✓ Done[/green]  job: {job_id}")
        # Plan JSON goes to stdout (pipeable)
        typer.echo(json.dumps(final["result"], indent=2))
        return

    if final["status"] == "pending":
        console.print(
            f"[cyan]… Waiting[/cyan]  An identical request is generating; "
            f"check 'fitai-pipeline status {job_id}' shortly."
        )
        return

    _print_status(final)
    raise typer.Exit(1)


@app.command()
def status(
    job_id: str = typer.Argument(..., help="Job ID to check"),
    owner: str = typer.Option(DEFAULT_OWNER, "--owner", "-o", help="Owner reference"),
    show_plan: bool = typer.Option(False, "--plan", help="Print the plan JSON when completed"),
):
    """Check the status of a generation job."""
    from fastmcp.exceptions import ToolError

    from fitai_pipeline.tools.job_status import get_job_status

    async def _status():
        lifecycle = await _get_lifecycle(with_catalogs=False)
        try:
            return await get_job_status(job_id, owner, orchestrator=lifecycle.orchestrator)
        finally:
            await lifecycle.store.close()

    try:
        result = _run(_status())
    except ToolError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    _print_status(result)
    if show_plan and result.get("result"):
        typer.echo(json.dumps(result["result"], indent=2))


@app.command("list")
def list_jobs(
    owner: str = typer.Option(DEFAULT_OWNER, "--owner", "-o", help="Owner reference"),
):
    """List an owner's generation jobs."""
    from fastmcp.exceptions import ToolError

    from fitai_pipeline.tools.list_jobs import list_jobs as _list_jobs

    async def _list():
        lifecycle = await _get_lifecycle(with_catalogs=False)
        try:
            return await _list_jobs(owner, orchestrator=lifecycle.orchestrator)
        finally:
            await lifecycle.store.close()

    try:
        result = _run(_list())
    except ToolError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    jobs = result["jobs"]
    if not jobs:
        typer.echo("No jobs found.")
        return

    typer.echo(f"{'JOB ID':<14} {'STATUS':<12} {'KIND':<14} CREATED")
    typer.echo("-" * 72)
    for job in jobs:
        status = job["status"]
        typer.echo(
            typer.style(f"{job['job_id']:<14} ", fg=_status_color(status))
            + typer.style(f"{status:<12} ", fg=_status_color(status))
            + f"{job['kind']:<14} {job['created_at']}"
        )


@app.command()
def sweep():
    """Run one sweep: expire overdue jobs and resume stalled ones (cron-friendly)."""
    from fitai_pipeline.tools.run_sweep import run_sweep

    async def _sweep():
        lifecycle = await _get_lifecycle()
        try:
            return await run_sweep(lifecycle.sweep)
        finally:
            await lifecycle.store.close()

    report = _run(_sweep())
    typer.echo(
        f"Examined {report['examined']}: {report['completed']} completed, "
        f"{report['failed']} failed, {report['deferred']} deferred, "
        f"{report['expired']} expired, {report['locks_purged']} lock(s) purged"
    )
    if report["errors"]:
        typer.echo(
            typer.style(f"{report['errors']} job(s) crashed; see logs", fg=typer.colors.RED),
            err=True,
        )
        raise typer.Exit(1)


@app.command()
def serve():
    """Start the MCP server (stdio transport)."""
    from fitai_pipeline.__main__ import main

    asyncio.run(main())


if __name__ == "__main__":
    app()
