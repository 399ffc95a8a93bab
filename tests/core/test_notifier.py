from __future__ import annotations

from core.notifier import Notifier


def test_notify_forwards_to_sink() -> None:
    received: list[str] = []
    Notifier(received.append).notify("Change to GPT.")
    assert received == ["Change to GPT."]


def test_failing_sink_does_not_raise() -> None:
    def sink(message: str) -> None:
        raise RuntimeError(message)

    Notifier(sink).notify("Change to GPT.")


def test_notify_without_sink_only_logs() -> None:
    Notifier().notify("Change to GPT.")
