"""Service layer for confirmed card and deck mutations.

Card writes go through two phases. A preview call renders the change,
stores it in the ``TokenStore`` and returns a token. An apply call consumes
the token, checks the typed confirmation phrase and only then writes to Mochi.
The token is consumed before the phrase is checked, so a wrong phrase burns
it and the caller has to preview again.

Batch applies run one card at a time and are best-effort: a failing card is
reported and the remaining cards are still written. Nothing is rolled back.

Deletes are not token-mediated; they need a typed ``delete card <id>`` or
``delete deck <name>`` phrase instead.
"""

from collections.abc import Awaitable, Callable, Sequence
from typing import Any, cast

import structlog

from mochi_mcp import schemas
from mochi_mcp.client import MochiClient
from mochi_mcp.confirmation import (
    CONFIRM_BATCH_UPDATE,
    CONFIRM_CREATE,
    CONFIRM_TAGS,
    CONFIRM_UPDATE,
    confirmation_matches,
    delete_phrase,
    validate_delete_confirmation,
)
from mochi_mcp.diff import format_card_preview, format_tag_change, generate_diff
from mochi_mcp.exceptions import ValidationError
from mochi_mcp.markdown import build_card_content, parse_card_content
from mochi_mcp.models import Card
from mochi_mcp.tokens import (
    BatchTagPayload,
    BatchUpdatePayload,
    CardTagsPayload,
    CreateCardPayload,
    OperationKind,
    PendingOperation,
    TokenStore,
    UpdateCardPayload,
)

logger = structlog.get_logger(__name__)

MAX_DECK_NAME_LENGTH = 100

# Preview tool to call again for each kind when a token is unusable
_PREVIEW_TOOLS = {
    OperationKind.CREATE_CARD: "create_card_preview",
    OperationKind.UPDATE_CARD: "update_card_preview",
    OperationKind.BATCH_UPDATE_CARD: "batch_update_preview",
    OperationKind.BATCH_TAG_UPDATE: "add_tags_preview or remove_tags_preview",
}

_DESCRIPTIONS = {
    OperationKind.CREATE_CARD: "card creation",
    OperationKind.UPDATE_CARD: "card update",
    OperationKind.BATCH_UPDATE_CARD: "batch card update",
    OperationKind.BATCH_TAG_UPDATE: "tag update",
}


class MutationService:
    """Two-phase commit coordinator for Mochi writes."""

    def __init__(
        self,
        client: MochiClient,
        tokens: TokenStore,
        token_ttl_minutes: float = 10,
        allow_deck_delete: bool = False,
    ) -> None:
        """
        Initialize the service.

        Args:
            client: Mochi API client used for reads during preview and for writes
            tokens: Store holding pending operations between preview and apply
            token_ttl_minutes: Lifetime of issued tokens
            allow_deck_delete: Capability flag gating deck deletion
        """
        self.client = client
        self.tokens = tokens
        self.token_ttl_minutes = token_ttl_minutes
        self.allow_deck_delete = allow_deck_delete

    # --- Card creation ---

    async def preview_create_card(
        self,
        deck_id: str,
        content: str,
        tags: list[str] | None = None,
    ) -> schemas.PreviewResult:
        """Preview a new card. Fails if the deck does not exist."""
        _require_text(deck_id, "deck_id")
        _require_text(content, "content")

        deck = await self.client.get_deck(deck_id)

        lines = [
            f"**Creating new card in deck:** {deck.name} ({deck_id})",
            "",
            "**Content:**",
            "```",
            content,
            "```",
        ]
        if tags:
            lines.extend(["", f"**Tags:** {', '.join(tags)}"])

        operation = self.tokens.issue(
            OperationKind.CREATE_CARD,
            CreateCardPayload(deck_id=deck_id, content=content, tags=tuple(tags) if tags else None),
            self.token_ttl_minutes,
        )
        return schemas.PreviewResult(
            preview="\n".join(lines),
            token=operation.token,
            expires_at=operation.expires_at,
            message=f'Review the card above. To create it, user must type: "{CONFIRM_CREATE}"',
        )

    async def apply_create_card(self, token: str, confirmation: str) -> schemas.ApplyResult:
        """Create the card captured by a create preview."""
        operation, error = self._claim(token, confirmation, OperationKind.CREATE_CARD, CONFIRM_CREATE)
        if operation is None:
            return schemas.ApplyResult(success=False, error=error)

        payload = cast(CreateCardPayload, operation.payload)
        card = await self.client.create_card(
            payload.deck_id,
            payload.content,
            list(payload.tags) if payload.tags else None,
        )
        logger.info("card_created", card_id=card.id, deck_id=card.deck_id)
        return schemas.ApplyResult(success=True, card=_card_summary(card))

    # --- Card update ---

    async def preview_update_card(
        self,
        card_id: str,
        content: str,
        tags: list[str] | None = None,
    ) -> schemas.UpdatePreviewResult:
        """Preview replacing a card's content, and optionally its tags, with a diff."""
        _require_text(card_id, "card_id")
        _require_text(content, "content")

        card = await self.client.get_card(card_id)
        return self._issue_update(card, content, tags)

    async def preview_update_card_fields(
        self,
        card_id: str,
        question: str | None = None,
        answer: str | None = None,
        tags: list[str] | None = None,
    ) -> schemas.UpdatePreviewResult:
        """
        Preview editing a card's question and/or answer.

        Fields left as None keep their current value. The content is rebuilt
        with the standard separator, which normalizes surrounding whitespace.

        Args:
            card_id: The card to edit
            question: New question text (optional)
            answer: New answer text (optional)
            tags: Replacement tag list (optional)
        """
        _require_text(card_id, "card_id")
        if question is None and answer is None and tags is None:
            raise ValidationError("Provide at least one of question, answer or tags")

        card = await self.client.get_card(card_id)
        if question is None and answer is None:
            proposed = card.content
        else:
            current = parse_card_content(card.content)
            proposed = build_card_content(
                question if question is not None else current.question,
                answer if answer is not None else current.answer,
            )
        return self._issue_update(card, proposed, tags)

    async def apply_update_card(self, token: str, confirmation: str) -> schemas.ApplyResult:
        """Write the content and tags captured by an update preview."""
        operation, error = self._claim(token, confirmation, OperationKind.UPDATE_CARD, CONFIRM_UPDATE)
        if operation is None:
            return schemas.ApplyResult(success=False, error=error)

        payload = cast(UpdateCardPayload, operation.payload)
        card = await self._write_update(payload)
        return schemas.ApplyResult(success=True, card=_card_summary(card))

    def _issue_update(
        self,
        card: Card,
        proposed: str,
        tags: list[str] | None,
    ) -> schemas.UpdatePreviewResult:
        diff = generate_diff(card.content, proposed)
        # A tag replacement is a change even when the text is identical
        has_changes = diff.has_changes or tags is not None

        lines = [format_card_preview(card), "", "**Proposed changes:**", "```diff", diff.diff, "```"]
        if tags is not None:
            lines.extend(["", f"**Tags:** [{', '.join(card.tags)}] → [{', '.join(tags)}]"])

        operation = self.tokens.issue(
            OperationKind.UPDATE_CARD,
            UpdateCardPayload(
                card_id=card.id,
                content=proposed,
                tags=tuple(tags) if tags is not None else None,
            ),
            self.token_ttl_minutes,
        )

        if has_changes:
            message = f'Review the changes above. To apply, user must type: "{CONFIRM_UPDATE}"'
        else:
            message = (
                "No changes detected between original and proposed content. "
                f'To apply anyway, user must type: "{CONFIRM_UPDATE}"'
            )

        return schemas.UpdatePreviewResult(
            preview="\n".join(lines),
            token=operation.token,
            expires_at=operation.expires_at,
            message=message,
            original=diff.original,
            proposed=diff.proposed,
            diff=diff.diff,
            has_changes=has_changes,
        )

    async def _write_update(self, payload: UpdateCardPayload) -> Card:
        card = await self.client.update_card(
            payload.card_id,
            content=payload.content,
            tags=list(payload.tags) if payload.tags is not None else None,
        )
        logger.info("card_updated", card_id=payload.card_id)
        return card

    # --- Batch update ---

    async def preview_batch_update(
        self,
        updates: Sequence[schemas.CardUpdateRequest],
    ) -> schemas.BatchUpdatePreviewResult:
        """
        Preview content updates for several cards under a single token.

        Cards are fetched one at a time to stay within the API rate limit.
        """
        if not updates:
            raise ValidationError("updates must not be empty")
        card_ids = [u.card_id for u in updates]
        if len(set(card_ids)) != len(card_ids):
            raise ValidationError("Each card may appear only once in a batch update")
        for update in updates:
            _require_text(update.card_id, "card_id")
            _require_text(update.content, "content")

        sections = []
        payloads = []
        has_changes = False
        for update in updates:
            card = await self.client.get_card(update.card_id)
            diff = generate_diff(card.content, update.content)
            has_changes = has_changes or diff.has_changes or update.tags is not None

            section = [f"### Card {card.id}", "```diff", diff.diff, "```"]
            if update.tags is not None:
                section.append(f"**Tags:** [{', '.join(card.tags)}] → [{', '.join(update.tags)}]")
            sections.append("\n".join(section))
            payloads.append(
                UpdateCardPayload(
                    card_id=card.id,
                    content=update.content,
                    tags=tuple(update.tags) if update.tags is not None else None,
                )
            )

        operation = self.tokens.issue(
            OperationKind.BATCH_UPDATE_CARD,
            BatchUpdatePayload(updates=tuple(payloads)),
            self.token_ttl_minutes,
        )
        return schemas.BatchUpdatePreviewResult(
            preview="\n\n".join(sections),
            token=operation.token,
            expires_at=operation.expires_at,
            message=(
                f"Review the {len(payloads)} card changes above. "
                f'To apply all of them, user must type: "{CONFIRM_BATCH_UPDATE}"'
            ),
            card_count=len(payloads),
            has_changes=has_changes,
        )

    async def apply_batch_update(self, token: str, confirmation: str) -> schemas.BatchApplyResult:
        """Write every update captured by a batch preview, best-effort."""
        operation, error = self._claim(
            token, confirmation, OperationKind.BATCH_UPDATE_CARD, CONFIRM_BATCH_UPDATE
        )
        if operation is None:
            return schemas.BatchApplyResult(success=False, error=error)

        payload = cast(BatchUpdatePayload, operation.payload)
        return await self._run_batch(payload.updates, self._write_update)

    # --- Tags ---

    async def preview_add_tags(self, card_ids: list[str], tags: list[str]) -> schemas.TagPreviewResult:
        """Preview adding tags to cards. Tags already present, in any case, are skipped."""

        def add(old_tags: list[str], wanted: list[str]) -> list[str]:
            seen = {t.lower() for t in old_tags}
            new_tags = list(old_tags)
            for tag in wanted:
                if tag.lower() not in seen:
                    seen.add(tag.lower())
                    new_tags.append(tag)
            return new_tags

        return await self._preview_tags(
            card_ids, tags, add, "add", "every card already has the requested tags"
        )

    async def preview_remove_tags(
        self,
        card_ids: list[str],
        tags: list[str],
    ) -> schemas.TagPreviewResult:
        """Preview removing tags from cards, matching case-insensitively."""

        def remove(old_tags: list[str], doomed: list[str]) -> list[str]:
            lowered = {t.lower() for t in doomed}
            return [t for t in old_tags if t.lower() not in lowered]

        return await self._preview_tags(
            card_ids, tags, remove, "remove", "no card has any of the requested tags"
        )

    async def apply_tag_update(self, token: str, confirmation: str) -> schemas.BatchApplyResult:
        """Write the tag sets captured by an add or remove tags preview, best-effort."""
        operation, error = self._claim(
            token, confirmation, OperationKind.BATCH_TAG_UPDATE, CONFIRM_TAGS
        )
        if operation is None:
            return schemas.BatchApplyResult(success=False, error=error)

        payload = cast(BatchTagPayload, operation.payload)
        return await self._run_batch(payload.updates, self._write_tags)

    async def _preview_tags(
        self,
        card_ids: list[str],
        tags: list[str],
        transform: Callable[[list[str], list[str]], list[str]],
        verb: str,
        unchanged_reason: str,
    ) -> schemas.TagPreviewResult:
        if not card_ids:
            raise ValidationError("card_ids must not be empty")
        cleaned = [t.strip() for t in tags if t.strip()]
        if not cleaned:
            raise ValidationError(f"Provide at least one tag to {verb}")

        changes = []
        for card_id in card_ids:
            card = await self.client.get_card(card_id)
            changes.append(
                schemas.TagChange(
                    card_id=card_id,
                    old_tags=card.tags,
                    new_tags=transform(card.tags, cleaned),
                )
            )

        has_changes = any(len(c.new_tags) != len(c.old_tags) for c in changes)
        operation = self.tokens.issue(
            OperationKind.BATCH_TAG_UPDATE,
            BatchTagPayload(
                updates=tuple(CardTagsPayload(card_id=c.card_id, tags=tuple(c.new_tags)) for c in changes)
            ),
            self.token_ttl_minutes,
        )

        if has_changes:
            message = f'Review the tag changes above. To apply, user must type: "{CONFIRM_TAGS}"'
        else:
            message = f"No tag changes: {unchanged_reason}."
        return schemas.TagPreviewResult(
            preview="\n".join(format_tag_change(c.card_id, c.old_tags, c.new_tags) for c in changes),
            token=operation.token,
            expires_at=operation.expires_at,
            message=message,
            updates=changes,
            has_changes=has_changes,
        )

    async def _write_tags(self, payload: CardTagsPayload) -> Card:
        card = await self.client.update_card(payload.card_id, tags=list(payload.tags))
        logger.info("card_tags_updated", card_id=payload.card_id, tags=list(payload.tags))
        return card

    # --- Shared apply helpers ---

    def _claim(
        self,
        token: str,
        confirmation: str,
        kind: OperationKind,
        phrase: str,
    ) -> tuple[PendingOperation | None, str | None]:
        """Consume a token and check its kind and confirmation phrase.

        Returns the operation, or None and a message for the caller.
        """
        operation = self.tokens.consume(token)
        preview_tool = _PREVIEW_TOOLS[kind]

        if operation is None:
            return None, f"Invalid or expired token. Please call {preview_tool} again."

        if operation.kind is not kind:
            logger.warning("token_kind_mismatch", expected=str(kind), actual=str(operation.kind))
            return None, (
                f"Token is for {_DESCRIPTIONS[operation.kind]}, not {_DESCRIPTIONS[kind]}. "
                f"Please call {preview_tool} again."
            )

        if not confirmation_matches(confirmation, phrase):
            logger.info("confirmation_rejected", kind=str(kind))
            return None, (
                f'Invalid confirmation. User must type exactly: "{phrase}". '
                f"The token has been used; please call {preview_tool} again."
            )

        return operation, None

    async def _run_batch(
        self,
        items: Sequence[UpdateCardPayload] | Sequence[CardTagsPayload],
        write: Callable[[Any], Awaitable[Card]],
    ) -> schemas.BatchApplyResult:
        """Apply items in order. A failed item is recorded and the rest still run."""
        results = []
        for item in items:
            try:
                await write(item)
            except Exception as e:
                logger.warning("batch_item_failed", card_id=item.card_id, error=str(e), exc_info=True)
                results.append(schemas.BatchItemResult(card_id=item.card_id, success=False, error=str(e)))
            else:
                results.append(schemas.BatchItemResult(card_id=item.card_id, success=True))

        failed = sum(1 for r in results if not r.success)
        summary = f"{len(results) - failed} of {len(results)} cards updated"
        if failed:
            summary += f", {failed} failed"
        logger.info("batch_applied", total=len(results), failed=failed)
        return schemas.BatchApplyResult(success=failed == 0, results=results, summary=summary)

    # --- Deletion (typed confirmation, no token) ---

    async def delete_card(
        self,
        card_id: str,
        confirmation: str,
        permanent: bool = False,
    ) -> schemas.DeleteResult:
        """Delete a card after a typed ``delete card <id>`` confirmation.

        Soft delete by default; ``permanent`` removes the card irreversibly.
        """
        _require_text(card_id, "card_id")
        if not validate_delete_confirmation(confirmation, card_id, "card"):
            return schemas.DeleteResult(
                success=False,
                message=f'Invalid confirmation. Must be exactly: "{delete_phrase("card", card_id)}"',
            )

        await self.client.delete_card(card_id, permanent=permanent)
        logger.info("card_deleted", card_id=card_id, permanent=permanent)

        if permanent:
            message = f"Card {card_id} permanently deleted."
        else:
            message = f"Card {card_id} moved to trash. Can be restored from Mochi app."
        return schemas.DeleteResult(success=True, message=message)

    async def delete_deck(self, deck_id: str, confirmation: str) -> schemas.DeleteResult:
        """Move a deck to the trash after a typed ``delete deck <name>`` confirmation.

        Disabled unless the capability flag is set. The expected name comes from
        the API, not the caller, and decks are never hard-deleted here.
        """
        if not self.allow_deck_delete:
            return schemas.DeleteResult(
                success=False,
                message="Deck deletion is disabled. Set MOCHI_ALLOW_DECK_DELETE=true to enable.",
            )
        _require_text(deck_id, "deck_id")

        deck = await self.client.get_deck(deck_id)
        if not validate_delete_confirmation(confirmation, deck.name, "deck"):
            return schemas.DeleteResult(
                success=False,
                message=f'Invalid confirmation. Must be exactly: "{delete_phrase("deck", deck.name)}"',
            )

        await self.client.delete_deck(deck_id, permanent=False)
        logger.info("deck_deleted", deck_id=deck_id)
        return schemas.DeleteResult(
            success=True,
            message=f'Deck "{deck.name}" moved to trash. Cards inside are preserved but hidden.',
        )

    # --- Deck creation ---

    async def create_deck(self, name: str, parent_id: str | None = None) -> schemas.DeckCreateResult:
        """Create a deck. Not destructive, so no confirmation is needed."""
        _require_text(name, "name")
        if len(name) > MAX_DECK_NAME_LENGTH:
            raise ValidationError(f"name must be at most {MAX_DECK_NAME_LENGTH} characters")

        deck = await self.client.create_deck(name, parent_id)
        logger.info("deck_created", deck_id=deck.id, parent_id=parent_id)
        return schemas.DeckCreateResult(
            success=True,
            deck=schemas.DeckSummary(id=deck.id, name=deck.name, parent_id=deck.parent_id),
        )


def _require_text(value: str, field: str) -> None:
    if not value or not value.strip():
        raise ValidationError(f"{field} must not be empty")


def _card_summary(card: Card) -> schemas.CardSummary:
    return schemas.CardSummary(id=card.id, content=card.content, deck_id=card.deck_id, tags=card.tags)
