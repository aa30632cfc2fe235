"""
Tests for Recent Changes Handler and Event Classifier

Tests payload parsing and the accept/reject rules.
"""

import pytest


class TestRecentChangeHandler:
    @pytest.fixture
    def handler(self):
        from filterhook.relay.handlers import RecentChangeHandler
        return RecentChangeHandler()

    @pytest.mark.asyncio
    async def test_parse_filter_hit(self, handler, payload):
        from filterhook.common.cursor_store import StreamPosition

        event = await handler.parse_event(payload(offset=77, log_id="555", filter_id=100))

        assert event.wiki == "enwiki"
        assert event.type == "log"
        assert event.log_id == 555
        assert event.filter_id == "100"
        assert event.domain == "en.wikipedia.org"
        assert event.position == StreamPosition("eqiad.mediawiki.recentchange", 0, 77)
        assert event.comment.startswith("Vandal99 triggered")

    @pytest.mark.asyncio
    async def test_edit_uses_edit_comment(self, handler, payload):
        raw = payload(type="edit", log_type=None, log_action=None)
        raw["comment"] = "/* History */ expand"

        event = await handler.parse_event(raw)

        assert event.comment == "/* History */ expand"

    @pytest.mark.asyncio
    async def test_list_log_params(self, handler, payload):
        raw = payload()
        raw["log_params"] = ["a", "b"]

        event = await handler.parse_event(raw)

        assert event.log_id is None
        assert event.filter_id is None

    @pytest.mark.asyncio
    async def test_missing_domain_is_dropped(self, handler, payload):
        raw = payload()
        del raw["meta"]["domain"]

        assert await handler.parse_event(raw) is None

    @pytest.mark.asyncio
    async def test_missing_position(self, handler, payload):
        raw = payload()
        del raw["meta"]["offset"]

        event = await handler.parse_event(raw)
        assert event.position is None

    @pytest.mark.asyncio
    async def test_non_dict_is_dropped(self, handler):
        assert await handler.parse_event(["not", "a", "dict"]) is None

    @pytest.mark.asyncio
    async def test_timestamp_to_datetime(self, handler, payload):
        event = await handler.parse_event(payload())

        assert event.datetime.year == 2025
        assert event.datetime.tzinfo is not None


class TestEventClassifier:
    @pytest.fixture
    def parse(self, payload):
        from filterhook.relay.handlers import RecentChangeHandler
        handler = RecentChangeHandler()

        async def _parse(**kwargs):
            return await handler.parse_event(payload(**kwargs))
        return _parse

    @pytest.mark.asyncio
    async def test_accepts_filter_hit(self, parse):
        from filterhook.relay.classifier import EventClassifier

        result = EventClassifier().classify(await parse())

        assert result.accepted is True
        assert result.reason is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kwargs,reason", [
        ({"wiki": "dewiki"}, "wrong_wiki"),
        ({"type": "edit"}, "not_log"),
        ({"log_type": "block", "log_action": "block"}, "not_filter_hit"),
        ({"log_action": "create"}, "not_filter_hit"),
        ({"log_id": None}, "missing_log_params"),
        ({"filter_id": None}, "missing_log_params"),
    ])
    async def test_rejections(self, parse, kwargs, reason):
        from filterhook.relay.classifier import EventClassifier

        result = EventClassifier().classify(await parse(**kwargs))

        assert result.accepted is False
        assert result.reason.value == reason

    @pytest.mark.asyncio
    async def test_first_failed_check_wins(self, parse):
        from filterhook.relay.classifier import EventClassifier, RejectReason

        result = EventClassifier().classify(await parse(wiki="dewiki", type="edit"))

        assert result.reason == RejectReason.WRONG_WIKI

    @pytest.mark.asyncio
    async def test_allow_list(self, parse):
        from filterhook.relay.classifier import EventClassifier, RejectReason

        classifier = EventClassifier(allowed_filters=["12", "100"])

        assert classifier.classify(await parse(filter_id="100")).accepted
        result = classifier.classify(await parse(filter_id="101"))
        assert result.reason == RejectReason.NOT_ALLOWLISTED

    @pytest.mark.asyncio
    async def test_empty_allow_list_accepts_all(self, parse):
        from filterhook.relay.classifier import EventClassifier

        assert EventClassifier(allowed_filters=[]).classify(await parse(filter_id="9999")).accepted

    @pytest.mark.asyncio
    async def test_replay_guard(self, parse):
        from filterhook.common.cursor_store import StreamPosition
        from filterhook.relay.classifier import EventClassifier, RejectReason

        classifier = EventClassifier()
        last = StreamPosition("eqiad.mediawiki.recentchange", 0, 1000)

        replayed = classifier.classify(await parse(offset=1000), last)
        assert replayed.reason == RejectReason.ALREADY_PROCESSED

        assert classifier.classify(await parse(offset=1001), last).accepted
