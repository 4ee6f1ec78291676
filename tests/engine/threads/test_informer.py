"""
Tests for the InformerThread and Lister
"""
# Standard
from datetime import timedelta
from unittest import mock

# Third Party
import pytest

# Local
from recon8.engine import FilterFuncs, InformerThread, ResourceIdentity
from recon8.exceptions import NotFoundError, WatchExpiredError
from recon8.store import KubeEventType, KubeWatchEvent
from recon8.test_helpers.helpers import (
    TEST_NAMESPACE,
    MockStore,
    library_config,
    make_configmap,
    wait_for,
)
from recon8.watched_object import WatchedObject

## Helpers #####################################################################


class Recorder:
    """Records enqueued identities"""

    def __init__(self):
        self.items = []

    def __call__(self, identity):
        self.items.append(identity)


def make_informer(store, **kwargs):
    kwargs.setdefault("resync_period", timedelta(0))
    return InformerThread(store, "ConfigMap", "v1", **kwargs)


def event(event_type, obj):
    return KubeWatchEvent(event_type, WatchedObject(obj))


## Event handling ##############################################################


def test_cache_and_lister():
    informer = make_informer(MockStore())
    informer._handle_event(event(KubeEventType.ADDED, make_configmap("a")))
    informer._handle_event(
        event(KubeEventType.ADDED, make_configmap("b", namespace="other"))
    )

    lister = informer.lister()
    assert lister.get(TEST_NAMESPACE, "a").name == "a"
    assert len(lister.list()) == 2
    assert [obj.name for obj in lister.list("other")] == ["b"]

    informer._handle_event(event(KubeEventType.DELETED, make_configmap("a")))
    with pytest.raises(NotFoundError):
        lister.get(TEST_NAMESPACE, "a")


def test_filters_and_key_func():
    informer = make_informer(MockStore())
    passed = Recorder()
    mapped = Recorder()
    informer.add_handler(
        FilterFuncs(add_func=lambda obj: obj.name == "keep"), passed
    )
    informer.add_handler(
        FilterFuncs(),
        mapped,
        key_func=lambda obj: ResourceIdentity(None, "cluster")
        if obj.name == "keep"
        else None,
    )

    informer._handle_event(event(KubeEventType.ADDED, make_configmap("keep")))
    informer._handle_event(event(KubeEventType.ADDED, make_configmap("drop")))

    assert passed.items == [ResourceIdentity(TEST_NAMESPACE, "keep")]
    assert mapped.items == [ResourceIdentity(None, "cluster")]


def test_relisted_add_is_an_update():
    """An ADDED for a cached object is offered to the update filter with the
    cached object as the old state
    """
    informer = make_informer(MockStore())
    update_func = mock.Mock(return_value=True)
    add_func = mock.Mock(return_value=True)
    recorder = Recorder()
    informer.add_handler(FilterFuncs(add_func=add_func, update_func=update_func), recorder)

    first = make_configmap()
    informer._handle_event(event(KubeEventType.ADDED, first))
    second = make_configmap(data={"a": "b"})
    informer._handle_event(event(KubeEventType.ADDED, second))

    assert add_func.call_count == 1
    assert update_func.call_count == 1
    old, new = update_func.call_args[0]
    assert old.get("data") is None
    assert new.get("data") == {"a": "b"}
    assert len(recorder.items) == 2


def test_delete_of_unknown_object_is_dropped():
    """A delete replayed after a relist already dropped the object is not
    dispatched a second time
    """
    informer = make_informer(MockStore())
    delete_func = mock.Mock(return_value=True)
    informer.add_handler(FilterFuncs(delete_func=delete_func), Recorder())
    informer._handle_event(event(KubeEventType.DELETED, make_configmap("gone")))
    assert not delete_func.called
    assert informer.list() == []


def test_handler_error_does_not_stop_other_handlers():
    informer = make_informer(MockStore())
    recorder = Recorder()
    informer.add_handler(FilterFuncs(add_func=lambda _: 1 / 0), Recorder())
    informer.add_handler(FilterFuncs(), recorder)
    informer._handle_event(event(KubeEventType.ADDED, make_configmap()))
    assert len(recorder.items) == 1


def test_relist_replaces_cache():
    """Listing replaces the cache. Cached objects missing from the list are
    dispatched as deletes and the watch resumes from the newest listed version
    """
    store = MockStore([make_configmap("kept"), make_configmap("newer")])
    informer = make_informer(store)
    informer._handle_event(event(KubeEventType.ADDED, make_configmap("gone")))
    recorder = Recorder()
    informer.add_handler(FilterFuncs(delete_func=lambda _: True), recorder)

    resource_version = informer._relist()

    assert sorted(obj.name for obj in informer.list()) == ["kept", "newer"]
    assert recorder.items == [
        ResourceIdentity(TEST_NAMESPACE, "gone"),
        ResourceIdentity(TEST_NAMESPACE, "kept"),
        ResourceIdentity(TEST_NAMESPACE, "newer"),
    ]
    assert (
        resource_version
        == store.get_obj("ConfigMap", "newer", TEST_NAMESPACE)["metadata"]["resourceVersion"]
    )


def test_relist_of_empty_kind_watches_from_snapshot():
    informer = make_informer(MockStore())
    assert informer._relist() is None


## Thread behavior #############################################################


@pytest.mark.timeout(5)
def test_informer_streams_from_store():
    store = MockStore([make_configmap("existing")])
    informer = make_informer(store)
    recorder = Recorder()
    informer.add_handler(FilterFuncs(), recorder)
    informer.start_thread()
    try:
        assert wait_for(lambda: len(recorder.items) == 1)
        store.create(make_configmap("new"))
        assert wait_for(lambda: len(recorder.items) == 2)
        assert informer.lister().get(TEST_NAMESPACE, "new")
    finally:
        informer.stop_thread()
        informer.join(2)
    assert not informer.is_alive()


@pytest.mark.timeout(5)
def test_informer_retries_failed_watch():
    """A failed watch is retried after a fresh list and a successful list
    restores the retry budget
    """
    store = MockStore([make_configmap()])
    real_watch = store.watch_objects.side_effect
    attempts = []

    def flaky_watch(*args, **kwargs):
        attempts.append(kwargs.get("resource_version"))
        if len(attempts) == 1:
            raise RuntimeError("watch broke")
        return real_watch(*args, **kwargs)

    store.watch_objects.side_effect = flaky_watch
    recorder = Recorder()
    with library_config(informer={"watch_retry_delay": "0.01s", "watch_retry_count": 2}):
        informer = make_informer(store)
        informer.add_handler(FilterFuncs(), recorder)
        informer.start_thread()
        try:
            assert wait_for(lambda: len(attempts) == 2)
            assert informer.attempts_left == 2
            assert store.list.call_count == 2

            # Each list offers the object again, the second time as an update
            assert len(recorder.items) == 2

            # The watch resumes from the listed version
            version = store.get_obj("ConfigMap", "test-cm", TEST_NAMESPACE)["metadata"][
                "resourceVersion"
            ]
            assert attempts == [version, version]
        finally:
            informer.stop_thread()
            informer.join(2)


@pytest.mark.timeout(5)
def test_informer_drops_objects_deleted_while_watch_was_down():
    store = MockStore([make_configmap("gone"), make_configmap("kept")])
    real_watch = store.watch_objects.side_effect
    attempts = []

    def broken_then_real(*args, **kwargs):
        attempts.append(1)
        if len(attempts) == 1:
            store.delete("ConfigMap", "gone", TEST_NAMESPACE)
            raise RuntimeError("watch broke")
        return real_watch(*args, **kwargs)

    store.watch_objects.side_effect = broken_then_real
    delete_func = mock.Mock(return_value=True)
    recorder = Recorder()
    with library_config(informer={"watch_retry_delay": "0.01s"}):
        informer = make_informer(store)
        informer.add_handler(FilterFuncs(delete_func=delete_func), recorder)
        informer.start_thread()
        try:
            assert wait_for(lambda: len(attempts) == 2)
            lister = informer.lister()
            with pytest.raises(NotFoundError):
                lister.get(TEST_NAMESPACE, "gone")
            assert [obj.name for obj in lister.list()] == ["kept"]
            assert delete_func.call_count == 1
            assert delete_func.call_args[0][0].name == "gone"
            assert ResourceIdentity(TEST_NAMESPACE, "gone") in recorder.items
        finally:
            informer.stop_thread()
            informer.join(2)


@pytest.mark.timeout(5)
def test_informer_relists_when_watch_expires():
    store = MockStore([make_configmap()])
    real_watch = store.watch_objects.side_effect
    attempts = []

    def expired_then_real(*args, **kwargs):
        attempts.append(1)
        if len(attempts) == 1:
            raise WatchExpiredError("too old")
        return real_watch(*args, **kwargs)

    store.watch_objects.side_effect = expired_then_real
    with library_config(informer={"watch_retry_delay": "10s"}):
        informer = make_informer(store)
        informer.start_thread()
        try:
            # No retry delay is taken for an expired watch
            assert wait_for(lambda: len(attempts) == 2, timeout=2)
            assert store.list.call_count == 2
        finally:
            informer.stop_thread()
            informer.join(2)


@pytest.mark.timeout(5)
def test_informer_resync_reoffers_cached_objects():
    store = MockStore([make_configmap()])
    informer = make_informer(store, resync_period=timedelta(seconds=0.05))
    update_func = mock.Mock(return_value=True)
    recorder = Recorder()
    informer.add_handler(FilterFuncs(update_func=update_func), recorder)
    informer.start_thread()
    try:
        assert wait_for(lambda: update_func.call_count >= 2)
        old, new = update_func.call_args[0]
        assert old is new
    finally:
        informer.stop_thread()
        informer.join(2)
    assert len(recorder.items) >= 3
