"""Completed tasks from the task database as recap events.

Tasks are not synced from an external API; recaps read them straight from
the destination task database. Work tasks (``Type`` = ``"💼 Work"``) feed the
``workTasks`` bucket and everything else the personal ``tasks`` bucket.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..core.models import SourceEvent
from ..core.time import parse_calendar_date
from ..observability.loguru_config import get_logger
from ..sync.filters import and_, date_range, property_equals
from .base import plain_value

if TYPE_CHECKING:
    from ..rollups.time_windows import TimeWindow
    from ..sync.destination import DestinationStore, Record
    from ..sync.filters import Filter

__all__ = [
    "DONE_STATUS",
    "PERSONAL_TASKS_BUCKET",
    "WORK_TASK_TYPE",
    "WORK_TASKS_BUCKET",
    "TaskReader",
]

logger = get_logger("sync")

DONE_STATUS = "🟢 Done"
WORK_TASK_TYPE = "💼 Work"
PERSONAL_TASKS_BUCKET = "tasks"
WORK_TASKS_BUCKET = "workTasks"


class TaskReader:
    """Read completed tasks due within a window.

    Parameters
    ----------
    title_property
        Task title property
    type_property
        Personal category select (routing signal ``Category``)
    work_category_property
        Work category select (routing signal ``Work Category``)
    due_property
        Due date property
    status_property
        Status property
    """

    def __init__(
        self,
        *,
        title_property: str = "Task",
        type_property: str = "Type",
        work_category_property: str = "Work Category",
        due_property: str = "Due Date",
        status_property: str = "Status",
    ) -> None:
        self.title_property = title_property
        self.type_property = type_property
        self.work_category_property = work_category_property
        self.due_property = due_property
        self.status_property = status_property

    def completed_filter(self, window: TimeWindow) -> Filter:
        return and_(
            date_range(self.due_property, window.start, window.end),
            property_equals(self.status_property, DONE_STATUS),
        )

    def to_source_event(self, record: Record) -> SourceEvent:
        """Normalize a task record into an event of the personal or work task bucket."""
        props = record.properties
        task_type = plain_value(props.get(self.type_property)) or ""
        is_work = task_type == WORK_TASK_TYPE

        routing: dict[str, Any] = {"Category": task_type}
        if is_work:
            routing["Work Category"] = plain_value(props.get(self.work_category_property))

        return SourceEvent(
            category=WORK_TASKS_BUCKET if is_work else PERSONAL_TASKS_BUCKET,
            occurred_on=parse_calendar_date(plain_value(props.get(self.due_property))),
            label=str(plain_value(props.get(self.title_property)) or "Untitled task"),
            is_all_day=True,
            properties=routing,
        )

    async def read(
        self,
        store: DestinationStore,
        collection_id: str,
        window: TimeWindow,
    ) -> dict[str, list[SourceEvent]]:
        """Completed tasks in ``window`` keyed by bucket id."""
        records = await store.query(collection_id, self.completed_filter(window))

        by_bucket: dict[str, list[SourceEvent]] = {PERSONAL_TASKS_BUCKET: [], WORK_TASKS_BUCKET: []}
        for record in records:
            try:
                event = self.to_source_event(record)
            except ValueError as exc:
                logger.warning("Skipping task without a due date", record_id=record.id, error=str(exc))
                continue
            by_bucket[event.category].append(event)

        return by_bucket
