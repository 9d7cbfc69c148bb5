from gemcrush.events.bus import EVENT_CASCADE_COMPLETE, EventBus


def test_event_bus_emit_subscribe():
    bus = EventBus()
    received = {}

    def handler(sender, **kwargs):
        received.update(kwargs)

    bus.subscribe(EVENT_CASCADE_COMPLETE, handler)
    bus.emit(EVENT_CASCADE_COMPLETE, depth=2, score=90)

    assert received == {"depth": 2, "score": 90}


def test_emit_without_subscribers_is_noop():
    EventBus().emit("nobody_listens", value=1)


def test_bound_method_kept_alive_without_reference():
    bus = EventBus()
    seen = []

    class Listener:
        def __init__(self):
            bus.subscribe("ping", self.on_ping)

        def on_ping(self, sender, **kwargs):
            seen.append(kwargs["n"])

    Listener()
    bus.emit("ping", n=3)
    assert seen == [3]
