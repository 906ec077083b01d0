"""
Tests for node binding and the bounded poll.
"""

import pytest

from podsync.binding import NodeBinder
from podsync.core.errors import PollTimeoutError
from podsync.core.poll import poll_until
from podsync.tests.fakes import FakeClock, FakeCluster, FakeRecorder, make_pod, server_error


def _setup(node="node-1"):
    virtual = FakeCluster()
    recorder = FakeRecorder()
    clock = FakeClock()
    binder = NodeBinder(virtual, recorder, sleep=clock.sleep, monotonic=clock.monotonic)
    if node:
        virtual.add_node(node)
    return virtual, recorder, clock, binder


def test_poll_checks_before_sleeping():
    clock = FakeClock()
    poll_until(lambda: True, interval=0.05, timeout=2.0, sleep=clock.sleep, monotonic=clock.monotonic)
    assert clock.sleeps == []


def test_poll_times_out_with_bounded_attempts():
    clock = FakeClock()
    attempts = []

    def never():
        attempts.append(clock.now)
        return False

    with pytest.raises(PollTimeoutError):
        poll_until(never, interval=0.05, timeout=2.0, sleep=clock.sleep, monotonic=clock.monotonic)

    assert clock.now <= 2.0
    assert 35 <= len(attempts) <= 41


def test_poll_propagates_condition_errors():
    clock = FakeClock()

    def broken():
        raise server_error()

    with pytest.raises(Exception) as exc_info:
        poll_until(broken, interval=0.05, timeout=2.0, sleep=clock.sleep, monotonic=clock.monotonic)
    assert exc_info.value.status == 500


def test_binds_unassigned_virtual_pod():
    virtual, recorder, clock, binder = _setup()
    vpod = virtual.add_pod(make_pod())
    ppod = make_pod(name="web-0-x-tenant-a-x-t1", namespace="host", node_name="node-1")

    assert binder.ensure_node(ppod, vpod) is True
    assert virtual.calls_to("bind_pod") == [("bind_pod", "tenant-a", "web-0", "node-1")]
    assert virtual.pods[("tenant-a", "web-0")].spec.node_name == "node-1"
    assert recorder.events == []


def test_bind_waits_until_visible():
    virtual, _, clock, binder = _setup()
    vpod = virtual.add_pod(make_pod())
    ppod = make_pod(node_name="node-1")
    virtual.bind_takes_effect = False

    original_sleep = clock.sleep

    def sleep_then_settle(seconds):
        original_sleep(seconds)
        if len(clock.sleeps) == 3:
            virtual.pods[("tenant-a", "web-0")].spec.node_name = "node-1"

    binder._sleep = sleep_then_settle
    assert binder.ensure_node(ppod, vpod) is True
    assert len(clock.sleeps) == 3


def test_bind_poll_accepts_vanished_pod():
    virtual, _, clock, binder = _setup()
    vpod = virtual.add_pod(make_pod())
    ppod = make_pod(node_name="node-1")
    virtual.bind_takes_effect = False

    def sleep_and_delete(seconds):
        clock.sleep(seconds)
        virtual.pods.pop(("tenant-a", "web-0"), None)

    binder._sleep = sleep_and_delete
    assert binder.ensure_node(ppod, vpod) is True


def test_bind_poll_timeout_raises():
    virtual, _, clock, binder = _setup()
    vpod = virtual.add_pod(make_pod())
    ppod = make_pod(node_name="node-1")
    virtual.bind_takes_effect = False

    with pytest.raises(PollTimeoutError):
        binder.ensure_node(ppod, vpod)
    assert clock.now <= 2.0


def test_missing_virtual_node_requeues_without_binding():
    virtual, recorder, _, binder = _setup(node=None)
    vpod = virtual.add_pod(make_pod())
    ppod = make_pod(node_name="node-1")

    assert binder.ensure_node(ppod, vpod) is True
    assert virtual.calls_to("bind_pod") == []
    assert recorder.events == []


def test_node_lookup_error_propagates():
    virtual, _, _, binder = _setup()
    virtual.fail("get_node", server_error())
    vpod = virtual.add_pod(make_pod())

    with pytest.raises(Exception) as exc_info:
        binder.ensure_node(make_pod(node_name="node-1"), vpod)
    assert exc_info.value.status == 500


def test_bind_error_records_event_and_raises():
    virtual, recorder, _, binder = _setup()
    virtual.fail("bind_pod", server_error())
    vpod = virtual.add_pod(make_pod())

    with pytest.raises(Exception):
        binder.ensure_node(make_pod(node_name="node-1"), vpod)

    assert len(recorder.events) == 1
    event_type, reason, message = recorder.events[0]
    assert (event_type, reason) == ("Warning", "SyncError")
    assert message.startswith("Error binding pod: ")


def test_diverged_node_deletes_virtual_pod():
    virtual, _, _, binder = _setup()
    vpod = virtual.add_pod(make_pod(node_name="node-2"))

    assert binder.ensure_node(make_pod(node_name="node-1"), vpod) is True
    assert virtual.calls_to("delete_pod") == [("delete_pod", "tenant-a", "web-0", None, None)]
    assert virtual.calls_to("get_node") == []


def test_already_bound_is_noop():
    virtual, _, _, binder = _setup()
    vpod = virtual.add_pod(make_pod(node_name="node-1"))

    assert binder.ensure_node(make_pod(node_name="node-1"), vpod) is False
    assert virtual.calls_to("bind_pod") == []
    assert virtual.calls_to("delete_pod") == []
