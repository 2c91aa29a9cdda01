import asyncio
from contextlib import asynccontextmanager

import pytest

from blog_api.core.errors import NotFoundError, ValidationFailed
from blog_api.core.retry import QueryExecutor
from blog_api.votes import service


class VoteStore:
    """Answers vote queries and records the verb of every write."""

    def __init__(self, enable_voting=True, existing=None):
        self.post = {"id": "p1", "slug": "hello-world", "enable_voting": enable_voting}
        self.existing = existing
        self.executed = []
        self.transactions = 0

    @asynccontextmanager
    async def transaction(self):
        self.transactions += 1
        yield self

    async def fetch_one(self, sql, *args):
        if "FROM posts" in sql:
            return self.post if args[0] == self.post["slug"] else None
        if "FILTER" in sql:
            return {"upvotes": 3, "downvotes": 1}
        if "FROM votes" in sql:
            return self.existing
        return None

    async def execute(self, sql, *args):
        verb = sql.split()[0]
        self.executed.append((verb, args))
        if verb == "UPDATE":
            self.existing = {"id": args[0], "vote_type": args[1]}
        elif verb == "INSERT":
            self.existing = {"id": "v-new", "vote_type": args[3]}
        return f"{verb} 1"


def test_first_vote_is_inserted():
    store = VoteStore()
    stats = asyncio.run(service.cast_vote(QueryExecutor(store), "hello-world", "upvote", ip_address="1.2.3.4"))

    assert [verb for verb, _ in store.executed] == ["INSERT"]
    assert store.executed[0][1] == ("p1", "1.2.3.4", None, "upvote")
    assert store.transactions == 1
    assert stats["userVote"] == "upvote"


def test_existing_vote_is_updated_in_place():
    store = VoteStore(existing={"id": "v1", "vote_type": "upvote"})
    stats = asyncio.run(service.cast_vote(QueryExecutor(store), "hello-world", "downvote", session_id="s-1"))

    assert store.executed == [("UPDATE", ("v1", "downvote"))]
    assert stats == {"enabled": True, "upvotes": 3, "downvotes": 1, "userVote": "downvote"}


def test_vote_on_missing_post():
    with pytest.raises(NotFoundError):
        asyncio.run(service.cast_vote(QueryExecutor(VoteStore()), "nope", "upvote", ip_address="1.2.3.4"))


def test_vote_requires_enabled_voting():
    executor = QueryExecutor(VoteStore(enable_voting=False))
    with pytest.raises(ValidationFailed, match="disabled"):
        asyncio.run(service.cast_vote(executor, "hello-world", "upvote", ip_address="1.2.3.4"))


def test_vote_requires_identity():
    store = VoteStore()
    with pytest.raises(ValidationFailed, match="required"):
        asyncio.run(service.cast_vote(QueryExecutor(store), "hello-world", "upvote"))
    assert store.executed == []


def test_remove_vote_reports_stats_without_user_vote():
    store = VoteStore(existing={"id": "v1", "vote_type": "upvote"})
    stats = asyncio.run(service.remove_vote(QueryExecutor(store), "hello-world", session_id="abc"))

    assert stats == {"enabled": True, "upvotes": 3, "downvotes": 1, "userVote": None}
    assert [verb for verb, _ in store.executed] == ["DELETE"]
