"""Tests for linkanime.progress."""

from linkanime.models import LinkResult, complete_message, progress_message
from linkanime.progress import CallbackSink, NullSink, QueueSink, deliver


class TestMessages:
    def test_progress_shape(self):
        assert progress_message("ep01.mkv", "linked", 1, 12) == {
            "type": "progress",
            "file": "ep01.mkv",
            "status": "linked",
            "current": 1,
            "total": 12,
        }

    def test_complete_carries_result(self):
        result = LinkResult(linked_count=2, skipped_count=1, total_bytes=30, dest_dir="/lib")
        message = complete_message(result)

        assert message["type"] == "complete"
        assert message["result"]["linked_count"] == 2
        assert message["result"]["skipped_count"] == 1
        assert message["result"]["dest_dir"] == "/lib"


class TestSinks:
    def test_queue_sink_keeps_order(self):
        sink = QueueSink()
        for i in range(3):
            sink.send({"type": "progress", "current": i})

        assert [m["current"] for m in sink.drain()] == [0, 1, 2]
        assert sink.drain() == []

    def test_full_queue_drops_instead_of_blocking(self):
        sink = QueueSink(maxsize=2)
        for i in range(5):
            sink.send({"type": "progress", "current": i})

        assert sink.dropped == 3
        assert [m["current"] for m in sink.drain()] == [0, 1]

    def test_callback_sink(self):
        received = []
        deliver(CallbackSink(received.append), {"type": "complete"})
        assert received == [{"type": "complete"}]

    def test_null_sink_and_none(self):
        deliver(NullSink(), {"type": "progress"})
        deliver(None, {"type": "progress"})

    def test_failing_sink_is_logged(self, caplog):
        def explode(message):
            raise RuntimeError("consumer gone")

        deliver(CallbackSink(explode), {"type": "progress"})

        assert "consumer gone" in caplog.text
