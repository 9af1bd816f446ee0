# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Rich console output for scan state, progress and detections."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from sitewarden import __version__
from sitewarden.core.constants import Confidence, ScanStatus, StepStatus
from sitewarden.models.finding import Detection, Finding
from sitewarden.models.state import ScanProgress, ScanState

console = Console()

CONFIDENCE_COLORS = {
    Confidence.VERY_HIGH: "bold red",
    Confidence.HIGH: "red",
    Confidence.MEDIUM: "yellow",
    Confidence.LOW: "cyan",
    Confidence.BENIGN: "dim",
}

STATUS_COLORS = {
    ScanStatus.RUNNING: "bold cyan",
    ScanStatus.COMPLETED: "bold green",
    ScanStatus.CANCELLED: "yellow",
    ScanStatus.IDLE: "dim",
    ScanStatus.SINGLE: "bold green",
}

STEP_COLORS = {
    StepStatus.SUCCESS: "green",
    StepStatus.WARNING: "yellow",
    StepStatus.CRITICAL: "red",
}

BOX_COLORS = {
    "clean": "bold green",
    "threat": "bold red",
    "cancelled": "yellow",
}


def _header() -> None:
    console.print()
    console.print(f"[bold]sitewarden v{__version__}[/bold] - Site Malware Scanner")
    console.print()


def _finding_kind(finding: Finding) -> str:
    if finding.is_core_modified:
        return "core file modified"
    if finding.is_plugin_modified:
        return "scanner file modified"
    if finding.is_database:
        return f"database ({finding.db_type})" if finding.db_type else "database"
    if finding.is_external:
        return "outside site root"
    return "file"


def _print_detection(detection: Detection, indent: str = "          ") -> None:
    color = CONFIDENCE_COLORS.get(detection.confidence, "white")
    label = Text(str(detection.confidence).upper().ljust(10), style=color)
    console.print(indent, label, end="")
    console.print(f"Line {detection.original_line}  score {detection.score}")
    if detection.patterns:
        console.print(f"{indent}  {', '.join(detection.patterns[:4])}", style="dim")
    if detection.matched_text:
        console.print(f"{indent}  {detection.matched_text[:120]}", style="dim italic")
    if detection.ai_analysis and not detection.without_ai:
        console.print(
            f"{indent}  AI: {detection.ai_status} - {detection.ai_analysis[:120]}", style="dim"
        )


def format_detections(label: str, detections: list[Detection]) -> None:
    """Print the detections of a standalone file or content scan."""
    _header()
    if not detections:
        console.print(Panel(f"[bold green]CLEAN[/bold green]  {escape(label)}", style="bold green"))
        console.print()
        return

    top = max(d.score for d in detections)
    console.print(
        Panel(
            f"[bold red]SUSPICIOUS[/bold red]  {escape(label)}  (top score: {top}/100)",
            style="bold red",
        )
    )
    console.print()
    for d in detections:
        _print_detection(d, indent="  ")
        console.print()
    console.print(f"  Summary: {len(detections)} detection(s)")
    console.print()


def format_scan_state(state: ScanState) -> None:
    """Print a finished or in-flight scan state with its findings."""
    _header()

    info = Table(show_header=False, box=None, padding=(0, 2))
    info.add_column("key", style="dim")
    info.add_column("value")
    color = STATUS_COLORS.get(state.status, "white")
    info.add_row("Status:", f"[{color}]{state.status}[/{color}]")
    if state.started:
        info.add_row("Started:", state.started)
    if state.completed:
        info.add_row("Completed:", state.completed)
    if state.elapsed is not None:
        info.add_row("Elapsed:", f"{state.elapsed:.1f}s")
    if state.patterns_source:
        info.add_row("Rules:", state.patterns_source)
    console.print(info)
    console.print()

    if state.final_message is not None:
        box = BOX_COLORS.get(state.final_message.box_class, "white")
        console.print(
            Panel(
                f"[{box}]{state.final_message.text}[/{box}]\n{state.final_message.detail}",
                style=box,
            )
        )
        console.print()

    if state.step_counts or state.step_status:
        steps = Table(title="Checks", show_lines=False)
        steps.add_column("Step")
        steps.add_column("Checked", justify="right")
        steps.add_column("Found", justify="right")
        steps.add_column("Status")
        for step in sorted(set(state.step_counts) | set(state.step_status)):
            count = state.step_counts.get(step)
            status = state.step_status.get(step)
            error = state.step_error.get(step)
            status_text = Text(str(status) if status else "-", style=STEP_COLORS.get(status, "dim"))
            if error:
                status_text.append(f" ({error})", style="red")
            steps.add_row(
                step,
                str(count.checked) if count else "-",
                str(count.found) if count else "-",
                status_text,
            )
        console.print(steps)
        console.print()

    for finding in state.findings:
        console.print(f"  [bold]{escape(finding.path)}[/bold]  [dim]{_finding_kind(finding)}[/dim]")
        for d in finding.snippets[:3]:
            _print_detection(d)
        if len(finding.snippets) > 3:
            console.print(f"          ... {len(finding.snippets) - 3} more", style="dim")
        console.print()

    console.print(
        f"  Summary: {state.scanned:,} files scanned, {state.suspicious:,} suspicious"
    )
    if state.errors:
        console.print(f"  Errors: {state.errors}", style="red")
    console.print()


def format_progress(progress: ScanProgress) -> None:
    """Print one progress line for a polling caller."""
    state = progress.state
    color = STATUS_COLORS.get(state.status, "white")
    line = Text()
    line.append(f"{state.status}".ljust(10), style=color)
    line.append(f" {progress.progress:>3}%")
    if state.current_step:
        line.append(f"  [{state.current_step}]", style="dim")
    if state.current_folder:
        line.append(f"  {state.current_folder[:80]}", style="dim")
    console.print(line)
    console.print(
        f"  {state.scanned:,} scanned / {state.total_files:,} queued, "
        f"{progress.threats} threat(s), {progress.ignored} ignored"
        + (f", rules: {progress.patterns_source}" if progress.patterns_source else "")
    )


