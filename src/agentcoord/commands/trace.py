"""Workflow trace commands."""

from datetime import datetime

import typer
from rich.markup import escape
from rich.table import Table

from ..config import get_active_config
from ..core import WorkflowTracer
from ..errors import CoordinationError
from ..models import StepStatus, WorkflowStatus, parse_cli_payload
from ..models.payload import describe_payload
from ..output import get_output_context

trace_app = typer.Typer(help="Trace multi-agent workflow steps")

_STATUS_STYLE = {
    StepStatus.RUNNING: "yellow",
    StepStatus.COMPLETED: "green",
    StepStatus.ERROR: "red",
}


def _tracer() -> WorkflowTracer:
    return WorkflowTracer(get_active_config())


def _clock(epoch_ms: int | None) -> str:
    if epoch_ms is None:
        return "-"
    return datetime.fromtimestamp(epoch_ms / 1000).strftime("%H:%M:%S")


@trace_app.command("start")
def trace_start(
    workflow_id: str = typer.Argument(..., help="Workflow id"),
    description: str = typer.Argument(..., help="What the workflow does"),
    domain: str = typer.Argument("unknown", help="Domain tag"),
) -> None:
    """Start tracing a workflow."""
    ctx = get_output_context()
    try:
        trace = _tracer().start(workflow_id, description, domain)
    except CoordinationError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None
    ctx.success(f"Workflow started: {workflow_id}", {"workflow": trace})


@trace_app.command("step")
def trace_step(
    workflow_id: str = typer.Argument(..., help="Workflow id"),
    agent: str = typer.Argument(..., help="Agent performing the step"),
    action: str = typer.Argument(..., help="What the agent is doing"),
    data: str | None = typer.Argument(None, help="Step input (JSON object/array or text)"),
) -> None:
    """Open a step and print its id."""
    ctx = get_output_context()
    try:
        step_id = _tracer().step(workflow_id, agent, action, parse_cli_payload(data))
    except CoordinationError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None
    if ctx.json_mode:
        ctx.print_json({"workflowId": workflow_id, "stepId": step_id})
    else:
        ctx.print(f"Step {step_id}: {escape(agent)} - {escape(action)}")


@trace_app.command("complete")
def trace_complete(
    workflow_id: str = typer.Argument(..., help="Workflow id"),
    step_id: int = typer.Argument(..., help="Step id returned by 'trace step'"),
    result: str | None = typer.Argument(None, help="Step output (JSON object/array or text)"),
) -> None:
    """Mark a step completed."""
    ctx = get_output_context()
    try:
        step = _tracer().complete(workflow_id, step_id, parse_cli_payload(result))
    except CoordinationError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None
    ctx.success(f"Step {step_id}: {step.agent} completed ({step.duration}ms)", {"step": step})


@trace_app.command("error")
def trace_error(
    workflow_id: str = typer.Argument(..., help="Workflow id"),
    step_id: int = typer.Argument(..., help="Step id returned by 'trace step'"),
    message: str = typer.Argument(..., help="Error message"),
) -> None:
    """Mark a step failed."""
    ctx = get_output_context()
    try:
        step = _tracer().error(workflow_id, step_id, message)
    except CoordinationError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None
    ctx.result(
        {"step": step},
        f"[red]Step {step_id}: {escape(step.agent)} failed[/red] - {escape(message)}",
    )


@trace_app.command("finish")
def trace_finish(
    workflow_id: str = typer.Argument(..., help="Workflow id"),
    status: WorkflowStatus = typer.Argument(
        WorkflowStatus.SUCCESS, help="Final status: success, error or partial"
    ),
) -> None:
    """Finish a workflow with a terminal status."""
    ctx = get_output_context()
    try:
        trace = _tracer().finish(workflow_id, status)
    except CoordinationError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None
    ctx.success(
        f"Workflow finished: {workflow_id} ({status.value}, {trace.total_duration}ms)",
        {"workflow": trace},
    )


@trace_app.command("timeline")
def trace_timeline(
    workflow_id: str = typer.Argument(..., help="Workflow id"),
) -> None:
    """Show every step of a workflow."""
    ctx = get_output_context()
    try:
        trace = _tracer().timeline(workflow_id)
    except CoordinationError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None

    if ctx.json_mode:
        ctx.print_json(trace)
        return

    ctx.print(f"\n[bold]Workflow timeline: {escape(trace.workflow_id)}[/bold]")
    ctx.print(f"Description: {escape(trace.description)}")
    ctx.print(f"Domain: {escape(trace.domain)}")
    ctx.print(f"Status: {trace.status.value}")
    if trace.total_duration is not None:
        ctx.print(f"Duration: {trace.total_duration}ms")

    table = Table(show_header=True)
    table.add_column("#", justify="right")
    table.add_column("Start")
    table.add_column("Agent")
    table.add_column("Action")
    table.add_column("Status")
    table.add_column("ms", justify="right")
    table.add_column("Notes")
    for step in trace.steps:
        note = step.error or describe_payload(step.result) or describe_payload(step.data)
        table.add_row(
            str(step.step_id),
            _clock(step.start_time),
            escape(step.agent),
            escape(step.action),
            f"[{_STATUS_STYLE[step.status]}]{step.status.value}[/]",
            "" if step.duration is None else str(step.duration),
            escape(note),
        )
    ctx.print_table(table)


@trace_app.command("list")
def trace_list(
    limit: int | None = typer.Argument(None, help="Number of workflows to show"),
) -> None:
    """List recent workflows, newest first."""
    ctx = get_output_context()
    traces = _tracer().list_workflows(limit)

    if ctx.json_mode:
        ctx.print_json(traces)
        return

    if not traces:
        ctx.print("No workflows traced yet")
        return
    ctx.print(f"\n[bold]Recent workflows ({len(traces)})[/bold]")
    for trace in traces:
        duration = "running" if trace.total_duration is None else f"{trace.total_duration}ms"
        ctx.print(
            f"  - {escape(trace.workflow_id)} ({trace.status.value}) {escape(trace.description)} "
            f"- {len(trace.steps)} steps, {duration}"
        )


@trace_app.command("analyze")
def trace_analyze(
    workflow_id: str = typer.Argument(..., help="Workflow id"),
) -> None:
    """Summarize step outcomes and durations."""
    ctx = get_output_context()
    try:
        analysis = _tracer().analyze(workflow_id)
    except CoordinationError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None

    if ctx.json_mode:
        ctx.print_json(analysis)
        return

    ctx.print(f"\n[bold]Workflow analysis: {escape(workflow_id)}[/bold]")
    ctx.print(f"Status: {analysis.status.value}")
    ctx.print(
        f"Steps: {analysis.total_steps} total, {analysis.completed_steps} completed, "
        f"{analysis.failed_steps} failed, {analysis.running_steps} running"
    )
    if analysis.average_duration is not None:
        ctx.print(
            f"Step duration: avg {analysis.average_duration}ms, "
            f"min {analysis.min_duration}ms, max {analysis.max_duration}ms"
        )
    for step in analysis.failures:
        ctx.print(
            f"  [red]failed[/red] {step.step_id}: {escape(step.agent)} - {escape(step.error or '')}"
        )
    for step in analysis.in_progress:
        ctx.print(
            f"  [yellow]running[/yellow] {step.step_id}: "
            f"{escape(step.agent)} - {escape(step.action)}"
        )
