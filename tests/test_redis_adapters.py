# tests/test_redis_adapters.py
# PURPOSE: Redis cache, stream publisher and consumer-group receiver against an in-memory fake.

import threading
import uuid

import pytest

from taskflow.cache import RedisTaskCache
from taskflow.errors import CacheUnavailableError, TransportError
from taskflow.events import PAYLOAD_FIELD, RedisStreamPublisher, TaskEvent, TaskEventType, decode_event
from taskflow.transport import RedisStreamReceiver
from taskflow.service import TaskService

from fakes import CountingTaskStore, FakeRedis

STREAM = "taskflow.task-events"
GROUP = "taskflow-analytics"
U1 = uuid.UUID("11111111-1111-1111-1111-111111111111")


@pytest.fixture()
def fake():
    return FakeRedis()


def _event(event_type=TaskEventType.CREATED):
    return TaskEvent(type=event_type, owner_id=U1, task_id=uuid.uuid4())


def _receiver(fake, consumer="worker-1"):
    return RedisStreamReceiver(fake, STREAM, GROUP, consumer, block_ms=10)


def _next_message(receiver, stop, attempts=5):
    # The first poll after start-up (or after idling) scans the pending list
    for _ in range(attempts):
        message = receiver.receive(stop)
        if message is not None:
            return message
    return None


# --- cache -----------------------------------------------------------------------


def test_cache_set_get_delete(fake):
    cache = RedisTaskCache(fake)

    cache.set("task:a:b", '{"x": 1}', 300)

    assert cache.get("task:a:b") == '{"x": 1}'
    assert fake.ttls["task:a:b"] == 300
    cache.delete("task:a:b")
    assert cache.get("task:a:b") is None


def test_cache_decodes_bytes(fake):
    fake.values["k"] = b"payload"
    assert RedisTaskCache(fake).get("k") == "payload"


@pytest.mark.parametrize("call", [
    lambda c: c.get("k"),
    lambda c: c.set("k", "v", 1),
    lambda c: c.delete("k"),
])
def test_cache_outage_raises_cache_unavailable(fake, call):
    fake.down = True
    with pytest.raises(CacheUnavailableError):
        call(RedisTaskCache(fake))


def test_service_degrades_to_store_when_redis_is_down(fake):
    store = CountingTaskStore()
    service = TaskService(store, RedisTaskCache(fake))
    created = service.create_task(U1, "Survives outage")

    fake.down = True

    assert service.get_task(U1, created.id) == created
    assert store.calls["get"] == 1


# --- publisher -------------------------------------------------------------------


def test_publisher_appends_json_payload(fake):
    event = _event()
    RedisStreamPublisher(fake, STREAM, maxlen=1000).publish_task_event(event)

    (entry_id, fields), = fake.streams[STREAM]
    assert entry_id == "1-0"
    assert fields["owner_id"] == str(U1)
    assert decode_event(fields[PAYLOAD_FIELD]) == event


def test_publisher_outage_raises_transport_error(fake):
    fake.down = True
    with pytest.raises(TransportError):
        RedisStreamPublisher(fake, STREAM).publish_task_event(_event())


def test_publisher_close_closes_client(fake):
    RedisStreamPublisher(fake, STREAM).close()
    assert fake.closed


# --- receiver --------------------------------------------------------------------


def test_receiver_creates_group_and_tolerates_existing_one(fake):
    _receiver(fake).ensure_group()
    _receiver(fake, "worker-2").ensure_group()  # BUSYGROUP is not an error

    assert (STREAM, GROUP) in fake.groups
    assert fake.streams[STREAM] == []


def test_receiver_delivers_and_commits(fake):
    stop = threading.Event()
    receiver = _receiver(fake)
    publisher = RedisStreamPublisher(fake, STREAM)
    receiver.ensure_group()
    event = _event()
    publisher.publish_task_event(event)

    message = _next_message(receiver, stop)

    assert message is not None
    assert decode_event(message.payload) == event
    receiver.commit(message)
    assert fake.groups[(STREAM, GROUP)]["pending"] == {}


def test_uncommitted_message_is_redelivered_after_idle(fake):
    stop = threading.Event()
    receiver = _receiver(fake)
    receiver.ensure_group()
    RedisStreamPublisher(fake, STREAM).publish_task_event(_event())

    first = _next_message(receiver, stop)
    # not committed: stays in the pending list
    assert list(fake.groups[(STREAM, GROUP)]["pending"]) == [first.id]

    again = _next_message(receiver, stop)

    assert again == first
    receiver.commit(again)
    assert _next_message(receiver, stop) is None


def test_restarted_consumer_recovers_its_pending_messages(fake):
    stop = threading.Event()
    crashed = _receiver(fake)
    crashed.ensure_group()
    RedisStreamPublisher(fake, STREAM).publish_task_event(_event())
    lost = _next_message(crashed, stop)

    restarted = _receiver(fake)  # same consumer name
    recovered = restarted.receive(stop)

    assert recovered == lost


def test_trimmed_pending_entry_is_acknowledged_and_skipped(fake):
    stop = threading.Event()
    receiver = _receiver(fake)
    receiver.ensure_group()
    RedisStreamPublisher(fake, STREAM).publish_task_event(_event())
    message = _next_message(receiver, stop)
    fake.streams[STREAM].clear()  # MAXLEN trimming removed the entry

    assert _next_message(receiver, stop) is None
    assert message.id not in fake.groups[(STREAM, GROUP)]["pending"]


def test_receiver_returns_none_once_stop_is_set(fake):
    stop = threading.Event()
    stop.set()
    assert _receiver(fake).receive(stop) is None
    assert fake.groups == {}


def test_receiver_outage_raises_transport_error(fake):
    receiver = _receiver(fake)
    receiver.ensure_group()
    fake.down = True
    with pytest.raises(TransportError):
        receiver.receive(threading.Event())
    with pytest.raises(TransportError):
        _receiver(fake, "other").ensure_group()


def test_receiver_recreates_dropped_group(fake):
    stop = threading.Event()
    receiver = _receiver(fake)
    receiver.ensure_group()
    fake.groups.clear()  # XGROUP DESTROY or a flushed Redis

    with pytest.raises(TransportError):
        receiver.receive(stop)
    assert (STREAM, GROUP) not in fake.groups

    RedisStreamPublisher(fake, STREAM).publish_task_event(_event())
    message = _next_message(receiver, stop)

    assert (STREAM, GROUP) in fake.groups
    assert message is not None
