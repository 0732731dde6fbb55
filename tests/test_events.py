from tradedesk.core.events import BalanceUpdated, EventBus, Topic


class TestEventBus:
    def test_listeners_called_in_registration_order(self):
        bus = EventBus()
        calls = []
        bus.subscribe(Topic.ORDER_UPDATE, lambda e: calls.append(("a", e)))
        bus.subscribe(Topic.ORDER_UPDATE, lambda e: calls.append(("b", e)))
        assert bus.publish(Topic.ORDER_UPDATE, 1) == 2
        assert calls == [("a", 1), ("b", 1)]

    def test_failing_listener_does_not_stop_others(self):
        bus = EventBus()
        seen = []

        def boom(e):
            raise RuntimeError("listener bug")

        bus.subscribe(Topic.BALANCE_UPDATE, boom)
        bus.subscribe(Topic.BALANCE_UPDATE, seen.append)
        ev = BalanceUpdated("acc", 10.0, 0.0)
        assert bus.publish(Topic.BALANCE_UPDATE, ev) == 1
        assert seen == [ev]

    def test_unsubscribe(self):
        bus = EventBus()
        seen = []
        unsubscribe = bus.subscribe(Topic.PRICE_UPDATE, seen.append)
        unsubscribe()
        unsubscribe()
        bus.publish(Topic.PRICE_UPDATE, "tick")
        assert seen == []
        assert bus.listener_count(Topic.PRICE_UPDATE) == 0

    def test_topics_are_isolated(self):
        bus = EventBus()
        seen = []
        bus.subscribe(Topic.FEED_ERROR, seen.append)
        assert bus.publish(Topic.PRICE_UPDATE, "tick") == 0
        assert seen == []

    def test_topic_by_value(self):
        bus = EventBus()
        seen = []
        bus.subscribe("priceUpdate", seen.append)
        bus.publish(Topic.PRICE_UPDATE, 1)
        assert seen == [1]
