import asyncio

import pytest

from blog_api.core.retry import QueryExecutor
from blog_api.search import service


def preview(title, description=None, tags=()):
    return {"id": title, "slug": title.lower(), "meta": {"title": title, "description": description}, "tags": list(tags)}


@pytest.mark.parametrize(
    ("post", "score"),
    [
        (preview("Python tips"), 1.0),
        (preview("Intro", "All about PYTHON"), 0.5),
        (preview("Intro", None, ["python3"]), 0.3),
        (preview("Intro", "python", ["python"]), 0.8),
        (preview("Python", "python", ["python"]), 1.0),
        (preview("Intro", "nothing here"), 0.0),
    ],
)
def test_relevance_score(post, score):
    assert service.relevance_score(post, "python") == pytest.approx(score)


class HistoryStore:
    def __init__(self, fail=False):
        self.fail = fail
        self.recorded = []

    async def execute(self, sql, *args):
        if self.fail:
            raise ValueError("relation search_history does not exist")
        self.recorded.append(args)
        return "INSERT 0 1"


def run_search(monkeypatch, store, posts, ip_address="10.0.0.1"):
    async def fake_list_posts(executor, **kwargs):
        return posts, len(posts)

    monkeypatch.setattr(service.post_service, "list_posts", fake_list_posts)
    return asyncio.run(service.search(QueryExecutor(store), "python", ip_address=ip_address))


def test_results_sorted_by_score_keeping_listing_order_for_ties(monkeypatch):
    posts = [
        preview("First", "python"),
        preview("Python second"),
        preview("Third", "python"),
        preview("Fourth", None, ["python"]),
    ]
    results, total = run_search(monkeypatch, HistoryStore(), posts)

    assert total == 4
    assert [r["id"] for r in results] == ["Python second", "First", "Third", "Fourth"]
    assert [r["relevanceScore"] for r in results] == [1.0, 0.5, 0.5, 0.3]


def test_search_is_recorded(monkeypatch):
    store = HistoryStore()
    run_search(monkeypatch, store, [preview("Python")])

    assert store.recorded == [("10.0.0.1", "python", 1)]


def test_history_failure_does_not_fail_search(monkeypatch):
    results, total = run_search(monkeypatch, HistoryStore(fail=True), [preview("Python")])

    assert total == 1
    assert results[0]["relevanceScore"] == 1.0


def test_anonymous_search_is_not_recorded(monkeypatch):
    store = HistoryStore()
    run_search(monkeypatch, store, [], ip_address=None)

    assert store.recorded == []
