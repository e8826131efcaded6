# tests/test_session.py
import threading

import pytest

from jobcrawl.crawler import CrawlSession, CrawlState


def test_budget_and_capacity_tracking():
    session = CrawlSession(5, items_emitted=1)
    session.details_enqueued(3)

    view = session.budget_view()
    assert view.remaining_capacity == 1
    assert not view.exhausted

    session.detail_settled()
    assert session.details_pending == 2


def test_concurrent_emits_are_not_lost():
    session = CrawlSession(10_000)

    def emit():
        for _ in range(500):
            session.record_emitted()

    threads = [threading.Thread(target=emit) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert session.items_emitted == 4000


def test_state_moves_running_draining_done():
    session = CrawlSession(1)

    assert session.state is CrawlState.RUNNING
    assert session.begin_draining() is True
    assert session.begin_draining() is False
    assert session.state is CrawlState.DRAINING
    session.finish()
    assert session.snapshot()["state"] == "done"


def test_non_positive_budget_rejected():
    with pytest.raises(ValueError):
        CrawlSession(0)
