"""
Text Canonicalizer
Turns item records and questionnaire answers into the exact strings that get
embedded. Ingestion and retrieval must both go through these functions so the
embedding model always sees the same layout.
"""

import json
from typing import Sequence

from app.models import ItemRecord

PROFILE_PREAMBLE = (
    "You are building a preference profile from questionnaire answers.",
    "Summarize consistent tastes implicitly. Answers:",
)


def item_to_text(record: ItemRecord) -> str:
    """
    Build the canonical embedding text for an item record.

    Lines appear in a fixed order and only when the field has content:
    Title (always), Year, Categories, Participants, Description, Attributes.
    Attributes are serialized with sorted keys so the output does not depend
    on the order the mapping was built in.

    Args:
        record: A validated item record.

    Returns:
        Newline-separated, labelled text.
    """
    lines = [f"Title: {record.title}"]
    if record.year is not None:
        lines.append(f"Year: {record.year}")
    if record.categories:
        lines.append(f"Categories: {', '.join(record.categories)}")
    if record.participants:
        lines.append(f"Participants: {', '.join(record.participants)}")
    if record.description:
        lines.append(f"Description: {record.description}")
    if record.attributes:
        serialized = json.dumps(record.attributes, sort_keys=True, ensure_ascii=False)
        lines.append(f"Attributes: {serialized}")
    return "\n".join(lines)


def profile_to_text(answers: Sequence[str]) -> str:
    """Join questionnaire answers into one preference profile, in order."""
    numbered = [f"Q{i}: {answer}" for i, answer in enumerate(answers, 1)]
    return "\n".join([*PROFILE_PREAMBLE, *numbered])
