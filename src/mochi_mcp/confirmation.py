"""Typed confirmation phrases."""

from typing import Literal

SubjectKind = Literal["card", "deck"]

CONFIRM_CREATE = "confirm create"
CONFIRM_UPDATE = "confirm update"
CONFIRM_BATCH_UPDATE = "confirm batch update"
CONFIRM_TAGS = "confirm tags"


def confirmation_matches(confirmation: str, expected: str) -> bool:
    """Exact phrase match, ignoring case and surrounding whitespace."""
    return confirmation.strip().lower() == expected.strip().lower()


def delete_phrase(subject_kind: SubjectKind, subject: str) -> str:
    """The phrase a user must type to delete a card or deck."""
    return f"delete {subject_kind} {subject}"


def validate_delete_confirmation(
    confirmation: str,
    expected_id: str,
    subject_kind: SubjectKind,
) -> bool:
    """Check a delete confirmation such as ``"delete card abc123"``.

    Deck deletion passes the deck's display name as ``expected_id``.
    """
    return confirmation_matches(confirmation, delete_phrase(subject_kind, expected_id))
