"""
Tests for the namespace label handler.
"""

from podsync.namespaces import NamespaceLabelHandler
from podsync.tests.fakes import FakeCluster, make_pod, server_error


def _handler():
    virtual = FakeCluster()
    enqueued = []
    handler = NamespaceLabelHandler(virtual, lambda ns, name: enqueued.append((ns, name)))
    return handler, virtual, enqueued


def test_label_change_enqueues_every_pod_of_namespace():
    handler, virtual, enqueued = _handler()
    virtual.add_pod(make_pod(name="web-0"))
    virtual.add_pod(make_pod(name="web-1"))
    virtual.add_pod(make_pod(name="db-0", namespace="tenant-b"))

    count = handler.on_update("tenant-a", {"env": "dev"}, {"env": "prod"})

    assert count == 2
    assert enqueued == [("tenant-a", "web-0"), ("tenant-a", "web-1")]
    assert virtual.calls_to("list_pods") == [("list_pods", "tenant-a")]


def test_unchanged_labels_do_nothing():
    handler, virtual, enqueued = _handler()
    virtual.add_pod(make_pod())

    assert handler.on_update("tenant-a", {"env": "dev"}, {"env": "dev"}) == 0
    assert handler.on_update("tenant-a", None, {}) == 0
    assert enqueued == []
    assert virtual.calls == []


def test_list_error_is_logged_and_swallowed():
    handler, virtual, enqueued = _handler()
    virtual.fail("list_pods", server_error())

    assert handler.on_update("tenant-a", {}, {"env": "prod"}) == 0
    assert enqueued == []
