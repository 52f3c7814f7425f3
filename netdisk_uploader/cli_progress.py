"""Console rendering and progress helpers for the uploader CLI."""
from __future__ import annotations

import time
from typing import Any, Dict, Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from .models import FolderUploadResult, PartProgress, StatsSnapshot, UploadJob, UploadResult, UploadStatus
from .utils.formatting import format_duration, human_size

console = Console()


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    console.print(
        Panel(
            table,
            title="[bold green]netdisk-up[/bold green]",
            subtitle="[dim]chunked uploader[/dim]",
            border_style="blue",
        )
    )


def render_progress_line(snapshot: StatsSnapshot) -> None:
    console.print(
        f"[bold]Progress[/bold] {snapshot.percent:.1f}% "
        f"({snapshot.done_files}/{snapshot.total_files}) | "
        f"[green]uploaded {snapshot.uploaded_files}[/green] | "
        f"[red]failed {snapshot.failed_files}[/red] | "
        f"{human_size(snapshot.uploaded_bytes)}/{human_size(snapshot.total_bytes)} | "
        f"{format_duration(snapshot.elapsed)}"
    )


def render_folder_summary(result: FolderUploadResult) -> None:
    """Final statistics for a folder upload."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold", justify="right")
    table.add_column()
    table.add_row("Total files", str(result.total_files))
    table.add_row("Uploaded", f"[green]{result.uploaded_files}[/green]")
    table.add_row("Failed", f"[red]{result.failed_files}[/red]" if result.failed_files else "0")
    table.add_row("Transferred", f"{human_size(result.uploaded_bytes)} / {human_size(result.total_bytes)}")
    table.add_row("Elapsed", format_duration(result.elapsed))
    if result.uploaded_files > 0:
        table.add_row("Average speed", f"{human_size(int(result.average_speed))}/s")
    console.print(Panel(table, title="[bold]Upload finished[/bold]", border_style="green"))


class SingleFileUploadProgress:
    """Part-by-part progress bar for a single file."""

    def __init__(self, filename: str, enabled: bool = True):
        self.filename = filename
        self._enabled = enabled
        self._progress: Optional[Progress] = None
        self._task_id: Optional[TaskID] = None

    def start(self) -> None:
        console.print(f"[cyan]Uploading:[/cyan] {self.filename}")
        if not self._enabled or self._progress is not None:
            return
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[filename]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            console=console,
            expand=False,
        )
        self._progress.start()

    def update(self, progress: PartProgress) -> None:
        if self._progress is None:
            return
        if self._task_id is None:
            self._task_id = self._progress.add_task(
                "upload", filename=self.filename[:60], total=max(progress.total_bytes, 1)
            )
        self._progress.update(self._task_id, completed=progress.uploaded_bytes)

    def complete(self, result: Optional[UploadResult] = None, error: Optional[str] = None) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None

        if error:
            console.print(f"[red]Failed:[/red] {self.filename} - {error}")
        elif result is not None and result.status == UploadStatus.EXISTS:
            console.print(f"[green]Already uploaded:[/green] {result.remote_path}")
        elif result is not None:
            console.print(f"[green]Uploaded:[/green] {result.remote_path}")


class FolderUploadProgressDisplay:
    """Event-based console display for a folder upload."""

    def __init__(self, show_progress: bool = True):
        self._show_progress = show_progress

    def _emit_timeline(self, status: str, name: str, size_bytes: int = 0, error: Optional[str] = None) -> None:
        stamp = time.strftime("%H:%M:%S")
        palette = {"DONE": "green", "FAIL": "red", "SKIP": "cyan", "UP": "blue"}
        color = palette.get(status, "white")
        size_label = f" {human_size(size_bytes)}" if size_bytes > 0 else ""
        error_label = f" cause={error}" if error else ""
        console.print(f"[dim]{stamp}[/dim] [{color}]{status:<4}[/{color}] {name}{size_label}{error_label}")

    def on_file_start(self, job: UploadJob) -> None:
        if self._show_progress:
            self._emit_timeline("UP", job.remote_path, job.size)

    def on_file_complete(self, result: UploadResult) -> None:
        status = "SKIP" if result.status == UploadStatus.EXISTS else "DONE"
        self._emit_timeline(status, result.remote_path, result.size)

    def on_file_fail(self, result: UploadResult) -> None:
        self._emit_timeline("FAIL", result.remote_path, result.size, error=result.error)

    def on_progress(self, snapshot: StatsSnapshot) -> None:
        if self._show_progress:
            render_progress_line(snapshot)

    def on_error(self, error: Exception) -> None:
        console.print(f"[red]Error:[/red] {error}")

    def on_finish(self, result: FolderUploadResult) -> None:
        if result.total_files == 0:
            console.print("No files to upload.")
            return
        render_folder_summary(result)
