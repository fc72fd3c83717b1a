"""Star-rated feedback left by users, kept as one list in the record store."""

from __future__ import annotations

import datetime as dt

from hms_scheduler.errors import ValidationFailed
from hms_scheduler.logging_config import get_logger
from hms_scheduler.models import FeedbackEntry, FeedbackStats, RatingShare, User
from hms_scheduler.store import FEEDBACK_KEY, RecordStore

logger = get_logger(__name__)

RATINGS = (1, 2, 3, 4, 5)


class FeedbackBox:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    async def list_feedback(self) -> list[FeedbackEntry]:
        raw = await self.store.get(FEEDBACK_KEY) or []
        return [FeedbackEntry.model_validate(f) for f in raw]

    async def submit(
        self,
        rating: int,
        message: str,
        now: dt.datetime,
        user: User | None = None,
    ) -> FeedbackEntry:
        """Store one rating with its message; anonymous when `user` is None."""
        if rating not in RATINGS:
            raise ValidationFailed("Please select a rating between 1 and 5", ["rating"])
        if not message.strip():
            raise ValidationFailed("Please provide feedback before submitting", ["message"])

        entries = await self.list_feedback()
        taken = {f.id for f in entries}
        entry_id = int(now.timestamp() * 1000)
        while entry_id in taken:
            entry_id += 1

        entry = FeedbackEntry(
            id=entry_id,
            rating=rating,
            message=message.strip(),
            timestamp=now,
            user_id=user.id if user else None,
            user_name=user.name if user else "Anonymous",
        )
        await self.store.set(FEEDBACK_KEY, [f.to_record() for f in entries] + [entry.to_record()])
        logger.info("feedback_submitted", feedback_id=entry.id, rating=rating, user_id=entry.user_id)
        return entry

    async def stats(self) -> FeedbackStats:
        """Count, mean rating and per-star share, each rounded to one decimal."""
        entries = await self.list_feedback()
        total = len(entries)
        average = round(sum(f.rating for f in entries) / total, 1) if total else 0.0
        ratings = []
        for star in RATINGS:
            count = sum(1 for f in entries if f.rating == star)
            ratings.append(
                RatingShare(rating=star, count=count, percentage=round(count / total * 100, 1) if total else 0.0)
            )
        return FeedbackStats(total=total, average=average, ratings=ratings)
