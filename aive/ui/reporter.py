from typing import Dict, Optional
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskID, TextColumn, TimeElapsedColumn
from aive.infrastructure.event_bus import EventBus
from aive.domain.events import (
    OperationCompleted, OperationFailed, OperationProgressUpdated, OperationStarted
)


class ConsoleReporter:
    """Subscribes to EventBus and renders one progress bar per operation."""

    def __init__(self, bus: EventBus, console: Optional[Console] = None):
        self.bus = bus
        self.console = console or Console(stderr=True)
        self.progress = Progress(
            TextColumn("[bold]{task.description}"),
            BarColumn(),
            TextColumn("{task.percentage:>3.0f}%"),
            TimeElapsedColumn(),
            console=self.console,
            transient=False,
        )
        self.tasks: Dict[str, TaskID] = {}
        self.completed_count = 0
        self.failed_count = 0
        self._setup_subscriptions()

    def _setup_subscriptions(self):
        self.bus.subscribe(OperationStarted, self.on_started)
        self.bus.subscribe(OperationProgressUpdated, self.on_progress)
        self.bus.subscribe(OperationCompleted, self.on_completed)
        self.bus.subscribe(OperationFailed, self.on_failed)

    def __enter__(self):
        self.progress.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.progress.stop()

    def on_started(self, event: OperationStarted):
        op = event.operation
        self.tasks[op.id] = self.progress.add_task(f"{op.type.value} {op.id[:8]}", total=100)

    def on_progress(self, event: OperationProgressUpdated):
        task_id = self.tasks.get(event.operation.id)
        if task_id is not None:
            self.progress.update(task_id, completed=event.progress_percent)

    def on_completed(self, event: OperationCompleted):
        self.completed_count += 1
        task_id = self.tasks.get(event.operation.id)
        if task_id is not None:
            self.progress.update(task_id, completed=100)
        info = event.video_info
        details = f" ({info.duration:.1f}s, {info.width}x{info.height})" if info else ""
        self.progress.console.print(f"[green]✓[/green] {event.output_path}{details}")

    def on_failed(self, event: OperationFailed):
        self.failed_count += 1
        task_id = self.tasks.get(event.operation.id)
        if task_id is not None:
            self.progress.update(task_id, visible=False)
        self.progress.console.print(f"[red]✗[/red] {event.operation.type.value}: {event.error_message}")
