#!/usr/bin/env python3
"""
Rich-based progress display for remote job polling.

Shows one spinner line per job being waited on, with its latest status,
poll count and elapsed time.
"""

import threading
from typing import Dict, Optional

from rich.console import Console
from rich.progress import (
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from ..contracts.pipeline_interface import JobStatus, RemoteJobHandle


_STATUS_STYLES = {
    JobStatus.PENDING: "yellow",
    JobStatus.IN_PROGRESS: "cyan",
    JobStatus.ACTIVE: "green",
    JobStatus.FAILED: "bold red",
}


class RichJobProgress:
    """Poll reporter rendering job progress with rich."""

    def __init__(self, console: Optional[Console] = None, transient: bool = False):
        self.console = console or Console()
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            TextColumn("•"),
            TextColumn("{task.fields[status]}"),
            TextColumn("•"),
            TextColumn("polls: {task.fields[polls]}"),
            TextColumn("•"),
            TimeElapsedColumn(),
            console=self.console,
            transient=transient,
        )
        self._tasks: Dict[str, TaskID] = {}
        self._lock = threading.Lock()
        self._started = False

    def start(self):
        if not self._started:
            self.progress.start()
            self._started = True

    def stop(self):
        if self._started:
            self.progress.stop()
            self._started = False

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    def on_poll(self, handle: RemoteJobHandle, status: JobStatus, elapsed: float, polls: int) -> None:
        task_id = self._task_for(handle)
        self.progress.update(task_id, status=self._styled(status), polls=polls)

    def on_finish(self, handle: RemoteJobHandle, status: JobStatus, elapsed: float) -> None:
        task_id = self._task_for(handle)
        self.progress.update(task_id, status=self._styled(status), completed=1)
        self.progress.stop_task(task_id)

    def _task_for(self, handle: RemoteJobHandle) -> TaskID:
        with self._lock:
            if handle.identifier not in self._tasks:
                label = handle.name or handle.identifier
                self._tasks[handle.identifier] = self.progress.add_task(
                    f"{handle.kind.value}: {label}",
                    total=1,
                    status=self._styled(JobStatus.PENDING),
                    polls=0,
                )
            return self._tasks[handle.identifier]

    @staticmethod
    def _styled(status: JobStatus) -> str:
        style = _STATUS_STYLES.get(status, "white")
        return f"[{style}]{status.value}[/{style}]"
