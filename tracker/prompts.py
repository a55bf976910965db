"""
Prompt text handed to coding agents for a work item.

The text is opaque to the lifecycle core: agents fetch it, work the item,
then submit a resolution.
"""

from typing import List

from tracker.kernel.models.base import enum_value
from tracker.kernel.models.item import ItemImage, WorkItem

NOT_PROVIDED = "Not provided"

CONSTRAINTS = "Keep the response specific, implementation-ready, and scoped to this item."
REQUESTED_OUTPUT = "Return root cause hypotheses, fixes with tradeoffs, and an ordered implementation plan."


def _title_case(value: str) -> str:
    return " ".join(token[:1].upper() + token[1:] for token in value.split("_"))


def _attachment_lines(images: List[ItemImage]) -> str:
    if not images:
        return "1. none"
    return "\n".join(f"{index}. {image.relative_path}" for index, image in enumerate(images, start=1))


def build_prompt_text(item: WorkItem, project_name: str) -> str:
    """Render the sectioned prompt for ``item``. Images must already be loaded."""
    tags = ", ".join(item.tags) if item.tags else "none"
    lines = [
        "[GOAL]",
        f"Propose a practical solution for this {enum_value(item.type)}.",
        "",
        "[PROJECT_CONTEXT]",
        f"Project: {project_name}",
        f"Status: {_title_case(enum_value(item.status))}",
        f"Priority: {_title_case(enum_value(item.priority))}",
        f"Tags: {tags}",
        "",
        "[PROBLEM_SUMMARY]",
        item.title,
        item.description,
        "",
        "[REPRODUCTION_STEPS]",
        NOT_PROVIDED,
        "",
        "[EXPECTED_BEHAVIOR]",
        NOT_PROVIDED,
        "",
        "[ACTUAL_BEHAVIOR]",
        NOT_PROVIDED,
        "",
        "[ATTACHMENTS]",
        _attachment_lines(sorted(item.images, key=lambda image: image.sort_order)),
        "",
        "[CONSTRAINTS]",
        CONSTRAINTS,
        "",
        "[REQUESTED_OUTPUT]",
        REQUESTED_OUTPUT,
    ]
    return "\n".join(lines)
