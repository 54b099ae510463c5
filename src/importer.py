"""Seeding helpers: load users and articles into the document store."""

from __future__ import annotations

from core.models import ARTICLE_COLLECTION, USER_COLLECTION, Article, User


def import_records(storage, payload: dict) -> tuple[int, int]:
    """Upsert users and articles from an import payload.

    Timestamps are normalized through the core models. Re-importing an article
    never rewrites its received set: the upsert keeps the stored list and the
    imported ids are added one by one with $addToSet, the same mutation the
    dispatcher uses, so a delivery recorded mid-import is not lost.
    """

    users = 0
    for raw in payload.get("users", []):
        record = {**raw, **User.from_record(raw).to_record()}
        storage.upsert(USER_COLLECTION, record)
        users += 1

    articles = 0
    for raw in payload.get("articles", []):
        record = {**raw, **Article.from_record(raw).to_record()}
        received = record.pop("received_by_users")
        # New articles start empty; existing ones keep what is stored.
        record["received_by_users"] = []
        storage.upsert(ARTICLE_COLLECTION, record, keep=("received_by_users",))
        for user_id in received:
            storage.update(
                ARTICLE_COLLECTION,
                {"id": record["id"]},
                {"$addToSet": {"received_by_users": user_id}},
            )
        articles += 1
    return users, articles
