from __future__ import annotations

import threading

from parqbench.session.publisher import ViewStatePublisher
from parqbench.session.types import ErrorInfo, Status, ViewState
from parqbench.shared.exceptions import ErrorKind


def test_initial_snapshot_is_idle() -> None:
    snapshot = ViewStatePublisher().snapshot()
    assert snapshot.status is Status.IDLE
    assert snapshot.frame is None


def test_publish_replaces_snapshot(people_frame) -> None:
    publisher = ViewStatePublisher()
    before = publisher.snapshot()

    publisher.publish(ViewState(frame=people_frame, status=Status.READY, generation=1))

    assert publisher.snapshot().frame is people_frame
    # Earlier snapshots held by readers are unaffected.
    assert before.frame is None


def test_readers_never_see_mixed_snapshots(people_frame) -> None:
    publisher = ViewStatePublisher()
    ready = ViewState(frame=people_frame, status=Status.READY, generation=2)
    failed = ViewState(
        frame=None,
        status=Status.FAILED,
        error=ErrorInfo(ErrorKind.DECODE_ERROR, "bad"),
        generation=0,
    )
    stop = threading.Event()
    seen: list[ViewState] = []

    def writer() -> None:
        while not stop.is_set():
            publisher.publish(ready)
            publisher.publish(failed)

    thread = threading.Thread(target=writer)
    thread.start()
    try:
        for _ in range(2000):
            seen.append(publisher.snapshot())
    finally:
        stop.set()
        thread.join()

    for snapshot in seen:
        if snapshot.status is Status.READY:
            assert snapshot.frame is people_frame and snapshot.error is None
        elif snapshot.status is Status.FAILED:
            assert snapshot.frame is None and snapshot.error is not None
