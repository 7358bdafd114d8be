"""Tests for the change notifier."""
from events import ChangeNotifier


def test_publish_reaches_every_subscriber():
    notifier = ChangeNotifier()
    received_a, received_b = [], []
    notifier.subscribe(received_a.append)
    notifier.subscribe(received_b.append)

    notifier.publish(["x"])

    assert received_a == [["x"]]
    assert received_b == [["x"]]


def test_unsubscribe_stops_delivery_and_is_idempotent():
    notifier = ChangeNotifier()
    received = []
    unsubscribe = notifier.subscribe(received.append)

    notifier.publish(1)
    unsubscribe()
    unsubscribe()
    notifier.publish(2)

    assert received == [1]
    assert notifier.subscriber_count == 0


def test_failing_subscriber_does_not_block_others():
    notifier = ChangeNotifier()
    received = []

    def broken(_):
        raise RuntimeError("boom")

    notifier.subscribe(broken)
    notifier.subscribe(received.append)

    notifier.publish("payload")

    assert received == ["payload"]


def test_subscriber_may_unsubscribe_while_notified():
    notifier = ChangeNotifier()
    calls = []
    handle = {}

    def once(payload):
        calls.append(payload)
        handle["unsubscribe"]()

    handle["unsubscribe"] = notifier.subscribe(once)

    notifier.publish("first")
    notifier.publish("second")

    assert calls == ["first"]
