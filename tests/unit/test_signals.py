"""Tests for cloudkeep.core.signals — SignalBus."""

from cloudkeep.core.signals import SignalBus


class TestSignalBus:
    def test_emit_delivers_args(self):
        bus = SignalBus()
        received = []
        bus.on("ping", lambda *args: received.append(args))

        assert bus.emit("ping", 1, "two") == 1
        assert received == [(1, "two")]

    def test_emit_without_handlers(self):
        assert SignalBus().emit("nobody") == 0

    def test_same_handler_registered_once(self):
        bus = SignalBus()
        calls = []

        def handler():
            calls.append(1)

        bus.on("s", handler)
        bus.on("s", handler)
        bus.emit("s")

        assert calls == [1]
        assert bus.handler_count("s") == 1

    def test_disposer_is_idempotent(self):
        bus = SignalBus()
        calls = []

        def handler():
            calls.append(1)

        dispose = bus.on("s", handler)
        dispose()
        dispose()
        bus.emit("s")

        assert calls == []
        assert bus.handler_count("s") == 0

    def test_stale_disposer_does_not_remove_new_registration(self):
        bus = SignalBus()

        def handler():
            pass

        dispose = bus.on("s", handler)
        dispose()
        bus.on("s", handler)
        dispose()
        assert bus.handler_count("s") == 1

    def test_failing_handler_does_not_stop_others(self):
        bus = SignalBus()
        received = []

        def broken():
            raise RuntimeError("boom")

        bus.on("s", broken)
        bus.on("s", lambda: received.append("ok"))
        bus.emit("s")

        assert received == ["ok"]

    def test_handler_may_dispose_during_emit(self):
        bus = SignalBus()
        received = []
        disposers = []

        def once():
            received.append("once")
            disposers[0]()

        disposers.append(bus.on("s", once))
        bus.emit("s")
        bus.emit("s")

        assert received == ["once"]
