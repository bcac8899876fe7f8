"""CLI progress display for push operations.

Rich-based progress bars driven by the (stage, processed, total)
callbacks the batch executor emits after each batch.
"""

from typing import Optional

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)


class PushProgressDisplay:
    """Shows one progress bar per push stage.

    Usage:
        >>> with PushProgressDisplay() as display:
        ...     engine = PushEngine(client, out, progress_callback=display.update)
        ...     engine.push(project_dir, "dist")
    """

    def __init__(self) -> None:
        self._progress: Optional[Progress] = None
        self._tasks: dict[str, TaskID] = {}

    def update(self, stage: str, processed: int, total: int) -> None:
        """Advance the bar for ``stage``, creating it on first use."""
        if self._progress is None:
            return

        task = self._tasks.get(stage)
        if task is None:
            task = self._progress.add_task(stage, total=total)
            self._tasks[stage] = task
        self._progress.update(task, completed=processed, total=total)

    def __enter__(self) -> "PushProgressDisplay":
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            refresh_per_second=4,
            transient=True,
        )
        self._progress.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._tasks = {}
