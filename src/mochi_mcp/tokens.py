"""Confirmation tokens for two-phase mutations.

A preview call stores the intended change as a ``PendingOperation`` and hands
the caller a short token. The apply call consumes the token exactly once:
consumption removes the entry whether or not it has expired, so a token can
never be replayed. Expired entries are swept lazily whenever a new token is
issued; there is no background timer.

The store lives in process memory and is not thread-safe. Two concurrent
``consume`` calls on one token resolve to a single winner because the entry is
deleted on first read.
"""

import random
import string
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum

import structlog
from pydantic import BaseModel, ConfigDict

logger = structlog.get_logger(__name__)

TOKEN_ALPHABET = string.ascii_lowercase + string.digits
TOKEN_LENGTH = 16


class OperationKind(StrEnum):
    """Kinds of mutation that can wait for confirmation."""

    CREATE_CARD = "create_card"
    UPDATE_CARD = "update_card"
    BATCH_UPDATE_CARD = "batch_update_card"
    BATCH_TAG_UPDATE = "batch_tag_update"


class Payload(BaseModel):
    """Immutable data captured at preview time."""

    model_config = ConfigDict(frozen=True)


class CreateCardPayload(Payload):
    deck_id: str
    content: str
    tags: tuple[str, ...] | None = None


class UpdateCardPayload(Payload):
    card_id: str
    content: str
    tags: tuple[str, ...] | None = None


class BatchUpdatePayload(Payload):
    updates: tuple[UpdateCardPayload, ...]


class CardTagsPayload(Payload):
    card_id: str
    tags: tuple[str, ...]


class BatchTagPayload(Payload):
    updates: tuple[CardTagsPayload, ...]


@dataclass(frozen=True)
class PendingOperation:
    """A mutation awaiting confirmation."""

    token: str
    kind: OperationKind
    payload: Payload
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """Whether the operation can no longer be applied at ``now``."""
        return now >= self.expires_at


def utc_now() -> datetime:
    return datetime.now(UTC)


def generate_token_id() -> str:
    """Generate a random token id.

    Drawn from the module PRNG, not a cryptographic source. Pass a different
    ``id_factory`` to ``TokenStore`` if tokens cross a trust boundary.
    """
    return "".join(random.choices(TOKEN_ALPHABET, k=TOKEN_LENGTH))


class TokenStore:
    """Process-lifetime store of pending operations keyed by token."""

    def __init__(
        self,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = generate_token_id,
    ) -> None:
        self._clock = clock
        self._id_factory = id_factory
        self._pending: dict[str, PendingOperation] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, token: object) -> bool:
        return token in self._pending

    def issue(self, kind: OperationKind, payload: Payload, ttl_minutes: float) -> PendingOperation:
        """Store a pending operation under a new token.

        Args:
            kind: What the operation will do when applied
            payload: Data the apply step needs, frozen at preview time
            ttl_minutes: Minutes until the token expires; zero or less expires immediately

        Returns:
            The stored operation, carrying its token and expiry
        """
        self._sweep_expired()

        now = self._clock()
        operation = PendingOperation(
            token=self._id_factory(),
            kind=kind,
            payload=payload,
            created_at=now,
            expires_at=now + timedelta(minutes=ttl_minutes),
        )
        self._pending[operation.token] = operation
        logger.debug(
            "token_issued",
            kind=str(kind),
            token_prefix=operation.token[:4],
            expires_at=operation.expires_at.isoformat(),
        )
        return operation

    def consume(self, token: str) -> PendingOperation | None:
        """Remove and return the operation for ``token``.

        Returns None when the token is unknown or expired; callers cannot tell
        the two apart. The entry is removed in both cases.
        """
        operation = self._pending.pop(token, None)
        if operation is None:
            return None
        if operation.is_expired(self._clock()):
            logger.debug("token_expired", kind=str(operation.kind), token_prefix=token[:4])
            return None
        logger.debug("token_consumed", kind=str(operation.kind), token_prefix=token[:4])
        return operation

    def peek(self, token: str) -> PendingOperation | None:
        """Look up an operation without consuming it."""
        operation = self._pending.get(token)
        if operation is None or operation.is_expired(self._clock()):
            return None
        return operation

    def clear(self) -> None:
        """Drop every pending operation."""
        self._pending.clear()

    def _sweep_expired(self) -> None:
        now = self._clock()
        expired = [token for token, op in self._pending.items() if op.is_expired(now)]
        for token in expired:
            del self._pending[token]
        if expired:
            logger.debug("tokens_swept", count=len(expired))
