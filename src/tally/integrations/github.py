"""Code-host activity (commits grouped per repository/PR and day) → PR records → PR events."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

from ..rollups.blocks import truncate_text
from ..sync.calendar_events import all_day_payload
from .base import BaseIntegration, TransformedItem, plain_value

if TYPE_CHECKING:
    from ..sync.calendar_events import CalendarEventPayload
    from ..sync.destination import Record

__all__ = ["GitHubIntegration"]


class GitHubIntegration(BaseIntegration):
    """Activities keyed by ``Unique ID`` (``<repository>-<civil date>[-PR<number>]``).

    Commit timestamps are UTC; the reportable date is taken in the civil
    timezone so late-evening commits stay on the local day. ``Project Type``
    (Personal/Work) routes the record to the personal or work PR calendar.
    """

    id = "github"
    natural_key_property = "Unique ID"

    def transform(self, raw: Mapping[str, Any]) -> TransformedItem:
        repository = str(self.require(raw, "repository"))
        day = self.raw_date(raw)

        pr_title = raw.get("pr_title")
        pr_number = raw.get("pr_number")
        unique_id = f"{repository}-{day.isoformat()}"
        if pr_number:
            unique_id += f"-PR{pr_number}"
        name = f"{repository} - {pr_title} (#{pr_number})" if pr_title and pr_number else repository

        properties = {
            "Name": name,
            "Unique ID": unique_id,
            "Date": day.isoformat(),
            "Repository": repository,
            "Commits": int(raw.get("commits") or 0),
            "Lines Added": int(raw.get("additions") or 0),
            "Lines Deleted": int(raw.get("deletions") or 0),
            "Files Changed": int(raw.get("files_changed") or 0),
            "PR Titles": truncate_text(pr_title or ""),
            "Commit Messages": truncate_text(raw.get("commit_messages") or ""),
            "Project Type": raw.get("project_type") or "Personal",
            self.calendar_created_property: False,
        }
        return TransformedItem(natural_key=unique_id, properties=properties, occurred_on=day)

    def calendar_payload(self, record: Record) -> CalendarEventPayload:
        props = record.properties
        name = plain_value(props.get("Name")) or plain_value(props.get("Repository")) or "Code activity"
        commits = props.get("Commits") or 0
        summary = f"{name} ({commits} commit{'s' if commits != 1 else ''})"

        description = (
            f"Repository: {props.get('Repository', '')}\n"
            f"Lines: +{props.get('Lines Added', 0)} / -{props.get('Lines Deleted', 0)}\n"
            f"Files Changed: {props.get('Files Changed', 0)}"
        )
        messages = props.get("Commit Messages")
        if messages:
            description += f"\n\nCommits:\n{messages}"

        return all_day_payload(summary, self.record_date(record), description=description)
