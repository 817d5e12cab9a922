import time

from epollweb.timer import TimerManager, TimerNode


class FakeRequest:
    def __init__(self, name):
        self.name = name
        self.timer = None

    def link_timer(self, timer):
        self.timer = timer


def test_node_zero_timeout_is_invalid_and_deleted():
    node = TimerNode("req", 0)
    assert node.is_valid() is False
    assert node.deleted is True
    assert node.request == "req"


def test_node_long_timeout_is_valid():
    node = TimerNode("req", 60_000)
    assert node.is_valid() is True
    assert node.deleted is False


def test_node_update_moves_deadline_forward():
    node = TimerNode("req", 0)
    before = node.expired_time
    node.update(60_000)
    assert node.expired_time >= before + 60_000
    assert node.is_valid() is True


def test_node_expires_after_wait():
    node = TimerNode("req", 20)
    time.sleep(0.05)
    assert node.is_valid() is False


def test_clear_request_detaches():
    node = TimerNode("req", 60_000)
    node.clear_request()
    assert node.request is None
    assert node.deleted is True


def test_set_deleted():
    node = TimerNode("req", 60_000)
    node.set_deleted()
    assert node.deleted is True


def test_add_timer_links_request():
    manager = TimerManager()
    req = FakeRequest("a")
    node = manager.add_timer(req, 60_000)
    assert req.timer is node
    assert node.request is req
    assert len(manager) == 1


def test_expired_timer_calls_back():
    seen = []
    manager = TimerManager(seen.append)
    req = FakeRequest("a")
    manager.add_timer(req, 0)
    result = manager.handle_expired()
    assert result == [req]
    assert seen == [req]
    assert len(manager) == 0


def test_cleared_timer_dropped_silently():
    seen = []
    manager = TimerManager(seen.append)
    req = FakeRequest("a")
    node = manager.add_timer(req, 60_000)
    node.clear_request()
    assert manager.handle_expired() == []
    assert seen == []
    assert len(manager) == 0


def test_valid_timer_kept():
    seen = []
    manager = TimerManager(seen.append)
    manager.add_timer(FakeRequest("a"), 60_000)
    assert manager.handle_expired() == []
    assert len(manager) == 1
    assert seen == []


def test_deleted_node_behind_valid_one_is_kept_lazily():
    manager = TimerManager()
    manager.add_timer(FakeRequest("a"), 60_000)
    later = manager.add_timer(FakeRequest("b"), 120_000)
    later.clear_request()
    manager.handle_expired()
    assert len(manager) == 2


def test_expiry_stops_at_first_valid_timer():
    seen = []
    manager = TimerManager(seen.append)
    r1, r2, r3 = FakeRequest("1"), FakeRequest("2"), FakeRequest("3")
    manager.add_timer(r1, 0)
    manager.add_timer(r2, 0)
    manager.add_timer(r3, 60_000)
    manager.handle_expired()
    assert seen == [r1, r2]
    assert len(manager) == 1


def test_expired_node_only_reported_once():
    seen = []
    manager = TimerManager(seen.append)
    manager.add_timer(FakeRequest("a"), 0)
    manager.handle_expired()
    manager.handle_expired()
    assert len(seen) == 1