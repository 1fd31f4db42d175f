import threading

from wacore.poll import AlwaysReadyPollable, EventPollable, poll


def test_always_ready_is_ready():
    pollable = AlwaysReadyPollable()
    assert pollable.is_ready() is True
    assert pollable.block() is None
    assert pollable.is_ready() is True


def test_event_pollable_starts_not_ready():
    pollable = EventPollable()
    assert pollable.is_ready() is False


def test_event_pollable_ready_after_fire():
    pollable = EventPollable()
    pollable.fire()
    assert pollable.is_ready() is True
    pollable.block()
    assert pollable.is_ready() is True


def test_event_pollable_uses_given_event():
    event = threading.Event()
    pollable = EventPollable(event)
    event.set()
    assert pollable.is_ready() is True


def test_event_pollable_block_waits_for_fire():
    pollable = EventPollable()
    finished = threading.Event()
    readiness_after_block = []

    def waiter():
        pollable.block()
        readiness_after_block.append(pollable.is_ready())
        finished.set()

    thread = threading.Thread(target=waiter, daemon=True)
    thread.start()
    assert not finished.wait(0.05)
    assert pollable.is_ready() is False
    assert readiness_after_block == []
    pollable.fire()
    assert finished.wait(5)
    assert readiness_after_block == [True]


def test_poll_returns_ready_indices():
    pending = EventPollable()
    fired = EventPollable()
    fired.fire()
    pollables = [AlwaysReadyPollable(), pending, fired]
    assert poll(pollables) == [0, 2]


def test_poll_empty():
    assert poll([]) == []


def test_poll_result_changes_after_fire():
    pollables = [EventPollable() for _ in range(3)]
    assert poll(pollables) == []
    pollables[1].fire()
    ready = poll(pollables)
    assert ready == [1]
    assert all(pollables[i].is_ready() for i in ready)