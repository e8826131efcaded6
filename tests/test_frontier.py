# tests/test_frontier.py
import threading

import pytest

from jobcrawl.crawler import CrawlTask, EnqueueStatus, Frontier, PageLabel, Storage


def _detail(key):
    return CrawlTask(url=f"https://www.indeed.com/rc/clk?jk={key}", unique_key=key, label=PageLabel.DETAIL)


def _drain(frontier):
    keys = []
    while True:
        task = frontier.pop(block=False)
        if task is None:
            return keys
        keys.append(task.unique_key)
        frontier.task_done()


# ----------------------------------------------------------------------
# dedup + ordering
# ----------------------------------------------------------------------
def test_duplicate_keys_are_dropped():
    frontier = Frontier()

    first = frontier.push(_detail("a"))
    second = frontier.push(_detail("a"))

    assert first.status == EnqueueStatus.ENQUEUED
    assert second.status == EnqueueStatus.SKIPPED_SEEN
    assert frontier.qsize() == 1


def test_forefront_batch_keeps_discovery_order_at_head():
    frontier = Frontier()
    frontier.push(_detail("tail"))

    frontier.push_many([_detail("a"), _detail("b"), _detail("c")], forefront=True)

    assert _drain(frontier) == ["a", "b", "c", "tail"]


def test_reclaim_requeues_a_seen_key():
    frontier = Frontier()
    frontier.push(_detail("a"))
    task = frontier.pop(block=False)

    result = frontier.reclaim(task.with_retry())
    frontier.task_done()

    assert result.accepted
    again = frontier.pop(block=False)
    assert again.unique_key == "a"
    assert again.retry_count == 1


# ----------------------------------------------------------------------
# close / join
# ----------------------------------------------------------------------
def test_closed_frontier_rejects_new_work_but_serves_pending():
    frontier = Frontier()
    frontier.push(_detail("a"))
    frontier.close()

    assert frontier.push(_detail("b")).status == EnqueueStatus.SKIPPED_CLOSED
    assert frontier.reclaim(_detail("a")).status == EnqueueStatus.SKIPPED_CLOSED
    assert frontier.pop(block=False).unique_key == "a"
    assert frontier.pop(block=True, timeout=0.01) is None


def test_pop_times_out_on_empty_queue():
    assert Frontier().pop(block=True, timeout=0.01) is None


def test_join_waits_for_task_done():
    frontier = Frontier()
    frontier.push(_detail("a"))
    done = threading.Event()

    def consume():
        frontier.pop()
        done.wait(timeout=2)
        frontier.task_done()

    worker = threading.Thread(target=consume)
    worker.start()
    done.set()
    frontier.join()
    worker.join(timeout=2)

    assert frontier.snapshot()["unfinished"] == 0


def test_task_done_too_many_times_raises():
    with pytest.raises(ValueError):
        Frontier().task_done()


# ----------------------------------------------------------------------
# persistence
# ----------------------------------------------------------------------
def test_restore_requeues_unhandled_latest_versions(tmp_path):
    storage = Storage(tmp_path)
    frontier = Frontier(storage)
    frontier.push_many([_detail("a"), _detail("b"), _detail("c")])

    a = frontier.pop(block=False)
    frontier.mark_handled(a)
    frontier.task_done()
    b = frontier.pop(block=False)
    frontier.reclaim(b.with_block_retry())
    frontier.task_done()

    resumed = Frontier(Storage(tmp_path))
    restored = resumed.restore()

    assert sorted(task.unique_key for task in restored) == ["b", "c"]
    assert {task.unique_key: task.block_count for task in restored}["b"] == 1
    assert resumed.seen_keys() == {"a", "b", "c"}
    assert resumed.push(_detail("a")).status == EnqueueStatus.SKIPPED_SEEN


def test_restore_without_storage_is_empty():
    assert Frontier().restore() == []
