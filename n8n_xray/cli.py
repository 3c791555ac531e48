"""Command line interface for analyzing n8n executions."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, TypeVar

import typer

from n8n_xray.analyze import ExecutionAnalyzer, OutputMode
from n8n_xray.client import N8nApiClient
from n8n_xray.config import load_config
from n8n_xray.constants import END_SENTINEL
from n8n_xray.contracts import AnalysisResult, NotFound
from n8n_xray.errors import MalformedTraceError, N8nApiError, NoRunDataError, UpstreamFetchError
from n8n_xray.persistence import get_repository
from n8n_xray.report import render_result, to_json
from n8n_xray.sources import get_source, load_execution_file

app = typer.Typer(help="Reconstruct node-by-node data flows of n8n executions")

backtrace_app = typer.Typer(help="Commands for stored execution backtraces")
app.add_typer(backtrace_app, name="backtrace")

T = TypeVar("T")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None, help="Logging level (defaults to log_level from configuration)"
    ),
) -> None:
    """n8n-xray CLI entry point."""
    level = (log_level or load_config().log_level).upper()
    logging.basicConfig(
        level=level, format="%(levelname)s %(name)s: %(message)s", force=True
    )


async def _with_analyzer(func: Callable[[ExecutionAnalyzer], Awaitable[T]]) -> T:
    config = load_config()
    client = N8nApiClient(config.n8n)
    try:
        analyzer = ExecutionAnalyzer(get_source(config, client), get_repository())
        return await func(analyzer)
    finally:
        await client.close()


def _fail(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _emit(result: AnalysisResult, mode: OutputMode, output: Optional[Path]) -> None:
    if mode == OutputMode.PERSIST and result.ok:
        typer.echo(
            f"Stored backtrace for execution {result.execution_id}: "
            f"{result.persisted_steps} steps"
        )
        for warning in result.warnings:
            typer.secho(f"  warning: {warning}", fg=typer.colors.YELLOW)
        return

    document = to_json(render_result(result))
    if output is not None:
        output.write_text(document + "\n", encoding="utf-8")
        typer.echo(f"X-ray report saved to: {output}")
    else:
        typer.echo(document)

    if not result.ok:
        _fail(
            f"Analysis failed for execution {result.execution_id} "
            f"({result.error_type}): {result.error}"
        )


@app.command("analyze")
def analyze(
    execution_id: Optional[str] = typer.Argument(None, help="n8n execution ID"),
    mode: OutputMode = typer.Option(OutputMode.REPORT, help="Emit a report or persist a backtrace"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the report to a file"),
    from_file: Optional[Path] = typer.Option(
        None,
        exists=True,
        dir_okay=False,
        help="Analyze an execution saved from the REST API instead of fetching it",
    ),
) -> None:
    """
    X-ray one execution: resolve its compressed data and rebuild the data flow.

    Example:
        n8n-xray analyze 696
        n8n-xray analyze 696 --mode persist
        n8n-xray analyze --from-file lifecycle/05-trace-696.json -o xray.json
    """
    if from_file is not None:
        try:
            fetched = load_execution_file(from_file)
        except UpstreamFetchError as exc:
            _fail(f"Cannot read execution file {from_file}: {exc}")
            return

        async def run(analyzer: ExecutionAnalyzer) -> AnalysisResult:
            if mode == OutputMode.PERSIST:
                return await analyzer.persist_record(fetched.record, fetched.workflow_data)
            return analyzer.analyze_record(fetched.record)

        result = asyncio.run(run(ExecutionAnalyzer(repository=get_repository())))
    elif execution_id is None:
        _fail("Provide an execution ID or --from-file")
        return
    else:
        try:
            result = asyncio.run(_with_analyzer(lambda a: a.analyze(execution_id, mode)))
        except UpstreamFetchError as exc:
            _fail(f"Failed to retrieve execution {execution_id}: {exc}")
            return
    _emit(result, mode, output)


@app.command("batch")
def batch(
    execution_ids: List[str] = typer.Argument(..., help="Execution IDs to analyze"),
    mode: OutputMode = typer.Option(OutputMode.REPORT, help="Emit a report or persist a backtrace"),
) -> None:
    """Analyze several executions, continuing past failures."""
    results = asyncio.run(_with_analyzer(lambda a: a.analyze_many(execution_ids, mode)))
    failed = 0
    for result in results:
        if result.ok and result.flow is not None:
            typer.echo(
                f"{result.execution_id}\tok\t{result.flow.execution_info.total_nodes} steps"
            )
        else:
            failed += 1
            typer.echo(f"{result.execution_id}\tfailed\t{result.error_type}: {result.error}")
    if failed:
        raise typer.Exit(code=1)


@app.command("latest")
def latest(
    workflow_id: str,
    mode: OutputMode = typer.Option(OutputMode.REPORT, help="Emit a report or persist a backtrace"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the report to a file"),
) -> None:
    """Analyze the most recent execution of a workflow."""

    async def run(analyzer: ExecutionAnalyzer) -> Optional[AnalysisResult]:
        async with N8nApiClient(load_config().n8n) as client:
            execution_id = await client.latest_execution_id(workflow_id)
        if execution_id is None:
            return None
        return await analyzer.analyze(execution_id, mode)

    try:
        result = asyncio.run(_with_analyzer(run))
    except UpstreamFetchError as exc:
        _fail(f"Failed to retrieve executions for workflow {workflow_id}: {exc}")
        return
    if result is None:
        _fail(f"No executions found for workflow {workflow_id}")
        return
    _emit(result, mode, output)


@app.command("node")
def node(
    execution_id: str,
    node_name: str,
    output_index: int = typer.Option(0, help="Output port to read"),
) -> None:
    """Show the resolved input and output of a single node."""
    try:
        found = asyncio.run(
            _with_analyzer(lambda a: a.node(execution_id, node_name, output_index))
        )
    except (UpstreamFetchError, NoRunDataError, MalformedTraceError) as exc:
        _fail(f"Cannot read node {node_name!r} of execution {execution_id}: {exc}")
        return
    if isinstance(found, NotFound):
        _fail(f"Node {node_name!r} in execution {execution_id}: {found.reason}")
        return
    typer.echo(json.dumps(found.model_dump(mode="json"), indent=2, ensure_ascii=False))


@app.command("summary")
def summary(execution_id: str) -> None:
    """Summarize node outcomes and classify the execution as errors/noerrors."""
    try:
        result = asyncio.run(_with_analyzer(lambda a: a.summary(execution_id)))
    except (UpstreamFetchError, NoRunDataError, MalformedTraceError) as exc:
        _fail(f"Cannot summarize execution {execution_id}: {exc}")
        return
    typer.echo(json.dumps(result.model_dump(mode="json"), indent=2, ensure_ascii=False))


@app.command("health")
def health() -> None:
    """Check that the n8n API is reachable with the configured credentials."""

    async def run() -> dict:
        async with N8nApiClient(load_config().n8n) as client:
            return await client.health_check()

    try:
        status = asyncio.run(run())
    except N8nApiError as exc:
        _fail(f"n8n API unreachable: {exc}")
        return
    typer.echo(f"n8n API: {status.get('status', 'ok')}")


@backtrace_app.command("show")
def backtrace_show(execution_id: str) -> None:
    """Show the stored backtrace of an execution."""
    repo = get_repository()
    rows = asyncio.run(repo.get_backtrace(execution_id))
    if not rows:
        typer.echo("Backtrace not found")
        raise typer.Exit(code=1)
    typer.echo(f"Backtrace {execution_id}: {len(rows)} steps")
    for row in rows:
        uuid_part = f" [{row.node_uuid}]" if row.node_uuid else ""
        typer.echo(
            f"- {row.step_index}: {row.node_name}{uuid_part} -> "
            f"{row.next_node_name or END_SENTINEL}"
        )


@backtrace_app.command("list")
def backtrace_list() -> None:
    """List executions that have a stored backtrace."""
    repo = get_repository()
    execution_ids = asyncio.run(repo.list_execution_ids())
    if not execution_ids:
        typer.echo("No backtraces found")
        return
    for execution_id in execution_ids:
        typer.echo(execution_id)


@backtrace_app.command("delete")
def backtrace_delete(execution_id: str) -> None:
    """Delete the stored backtrace of an execution."""
    repo = get_repository()
    deleted = asyncio.run(repo.delete_backtrace(execution_id))
    typer.echo(f"Deleted {deleted} steps for execution {execution_id}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
