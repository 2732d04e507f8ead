"""Unit tests for event enrichment."""

import logging
import re
from datetime import datetime, timezone

import pytest

from app.core.providers import ClientInfo
from app.schemas.event import NUMERIC_DEFAULTS, STRING_FIELDS
from app.services.event_enricher import (
    EnrichmentContext,
    EventEnricher,
    build_context,
    coerce_int,
    generate_event_id,
    parse_timestamp,
    resolve_client_ip,
)
from app.services.event_validator import validate_event
from conftest import CHROME_MAC_UA, FIXED_NOW, FakeGeoProvider, FakeUserAgentParser, make_event

UUID4_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$")


def enrich(enricher, context, **fields):
    return enricher.enrich(validate_event(make_event(**fields)), context)


class TestClientIP:
    def test_forwarded_for_first_hop_wins(self):
        assert resolve_client_ip("203.0.113.7, 10.0.0.1", "10.0.0.2", "127.0.0.1") == "203.0.113.7"

    def test_real_ip_used_without_forwarded_for(self):
        assert resolve_client_ip(None, "198.51.100.1", "127.0.0.1") == "198.51.100.1"

    def test_connection_address_is_last_resort(self):
        assert resolve_client_ip("", "", "127.0.0.1") == "127.0.0.1"

    def test_nothing_available(self):
        assert resolve_client_ip(None, None, None) == ""

    def test_build_context_reads_headers(self):
        ctx = build_context(
            {"x-forwarded-for": "203.0.113.7", "user-agent": "TestBot/1.0"}, "127.0.0.1", FIXED_NOW
        )
        assert ctx == EnrichmentContext("203.0.113.7", "TestBot/1.0", FIXED_NOW)

    def test_build_context_defaults_time_to_now(self):
        ctx = build_context({}, None)
        assert ctx.user_agent == ""
        assert ctx.now.tzinfo is not None


class TestGeo:
    def test_known_ip(self, enricher, context):
        event = enrich(enricher, context)
        assert (event.country, event.city) == ("DE", "Berlin")

    def test_city_and_country_default_independently(self, enricher):
        ctx = EnrichmentContext("198.51.100.1", "", FIXED_NOW)
        event = enrich(enricher, ctx)
        assert event.country == "US"
        assert event.city == "Unknown"

    def test_private_ip_is_unknown(self, enricher):
        ctx = EnrichmentContext("127.0.0.1", "", FIXED_NOW)
        event = enrich(enricher, ctx)
        assert (event.country, event.city) == ("Unknown", "Unknown")

    def test_failing_provider_degrades_to_unknown(self, context):
        class Broken(FakeGeoProvider):
            def lookup(self, ip):
                raise RuntimeError("database corrupt")

        event = enrich(EventEnricher(Broken(), FakeUserAgentParser()), context)
        assert (event.country, event.city) == ("Unknown", "Unknown")


class TestUserAgent:
    def test_header_used_when_event_has_none(self, enricher, context):
        event = enrich(enricher, context)
        assert event.user_agent == CHROME_MAC_UA
        assert event.browser == "Chrome"
        assert event.browser_version == "120.0.0"
        assert event.os == "Mac OS X"
        assert event.os_version == "10.15.7"
        assert event.device_type == "Desktop"

    def test_event_user_agent_takes_precedence(self, enricher, context):
        event = enrich(enricher, context, user_agent="TestBot/1.0")
        assert event.user_agent == "TestBot/1.0"
        assert event.browser == "TestBot"
        assert event.os == "Unknown"
        assert event.device_type == "Bot"

    def test_unparseable_user_agent(self, enricher, context):
        event = enrich(enricher, context, user_agent="???")
        assert event.browser == "Unknown"
        assert event.browser_version == ""
        assert event.os == "Unknown"
        assert event.os_version == ""

    def test_client_reported_families_fill_gaps(self, enricher, context):
        event = enrich(
            enricher, context, user_agent="???", browser="Netscape", os="BeOS", device_type="Tablet"
        )
        assert (event.browser, event.os, event.device_type) == ("Netscape", "BeOS", "Tablet")

    def test_no_user_agent_anywhere(self, enricher):
        ctx = EnrichmentContext("203.0.113.7", "", FIXED_NOW)
        event = enrich(enricher, ctx)
        assert event.user_agent == ""
        assert event.browser == "Unknown"

    def test_raising_parser_degrades(self, context):
        class Broken(FakeUserAgentParser):
            def parse(self, user_agent):
                raise ValueError("regex blew up")

        event = enrich(EventEnricher(FakeGeoProvider(), Broken()), context)
        assert event.browser == "Unknown"
        assert event.user_agent == CHROME_MAC_UA

    def test_partial_client_info(self, context):
        parser = FakeUserAgentParser({CHROME_MAC_UA: ClientInfo(browser="Chrome")})
        event = enrich(EventEnricher(FakeGeoProvider(), parser), context)
        assert event.browser == "Chrome"
        assert event.os == "Unknown"
        assert event.device_type == "Unknown"


class TestIdentity:
    def test_event_id_generated_when_absent(self, enricher, context):
        event = enrich(enricher, context)
        assert UUID4_RE.match(event.event_id)

    def test_event_id_passed_through(self, enricher, context):
        assert enrich(enricher, context, event_id="evt-42").event_id == "evt-42"

    def test_generated_ids_are_unique(self):
        ids = {generate_event_id() for _ in range(1000)}
        assert len(ids) == 1000
        assert all(len(i) == 36 and UUID4_RE.match(i) for i in ids)

    def test_timestamp_defaults_to_server_time(self, enricher, context):
        event = enrich(enricher, context)
        assert event.timestamp == FIXED_NOW

    def test_client_timestamp_kept(self, enricher, context):
        event = enrich(enricher, context, timestamp="2026-02-10T12:00:00Z")
        assert event.timestamp == datetime(2026, 2, 10, 12, 0, tzinfo=timezone.utc)

    def test_server_timestamp_always_overwritten(self, enricher, context):
        event = enrich(enricher, context, server_timestamp="1999-01-01T00:00:00Z")
        assert event.server_timestamp == FIXED_NOW

    @pytest.mark.parametrize("value", ["yesterday", 12345, "", None, {"a": 1}])
    def test_unusable_timestamp_falls_back(self, value):
        assert parse_timestamp(value, FIXED_NOW) == FIXED_NOW

    @pytest.mark.parametrize("value", ["yesterday", 1700000000])
    def test_timestamp_fallback_is_logged(self, value, caplog):
        with caplog.at_level(logging.DEBUG, logger="app.services.event_enricher"):
            assert parse_timestamp(value, FIXED_NOW) == FIXED_NOW
        assert "using server time" in caplog.text
        assert repr(value) in caplog.text

    def test_absent_timestamp_not_logged(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="app.services.event_enricher"):
            parse_timestamp(None, FIXED_NOW)
        assert caplog.text == ""

    def test_naive_timestamp_assumed_utc(self):
        parsed = parse_timestamp("2026-02-10T12:00:00", FIXED_NOW)
        assert parsed.tzinfo == timezone.utc


class TestCoercion:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (42, 42),
            ("42", 42),
            ("  7px", 7),
            ("-3", -3),
            (12.9, 12),
            ("12.9", 12),
            ("abc", 0),
            ("", 0),
            (None, 0),
            (True, 0),
            ([1, 2], 0),
            (float("nan"), 0),
            (float("inf"), 0),
        ],
    )
    def test_coerce_int(self, value, expected):
        assert coerce_int(value, 0) == expected

    @pytest.mark.parametrize(
        "value",
        [
            "1" * 5000,
            "-" + "9" * 5000,
            "99999999999999999999",
            2**31,
            -(2**31) - 1,
            1e300,
        ],
    )
    def test_out_of_range_falls_back_to_default(self, value):
        assert coerce_int(value, 0) == 0
        assert coerce_int(value, 1) == 1

    def test_int32_bounds_kept(self):
        assert coerce_int(str(2**31 - 1), 0) == 2**31 - 1
        assert coerce_int(-(2**31), 0) == -(2**31)

    def test_huge_digit_run_does_not_break_enrichment(self, enricher, context):
        event = enrich(enricher, context, click_x="1" * 5000, page_count="7" * 5000)
        assert event.click_x == 0
        assert event.page_count == 1

    def test_zero_falls_back_to_default(self):
        assert coerce_int(0, 1) == 1
        assert coerce_int("0", 1) == 1

    def test_page_count_defaults_to_one(self, enricher, context):
        assert enrich(enricher, context).page_count == 1
        assert enrich(enricher, context, page_count="lots").page_count == 1
        assert enrich(enricher, context, page_count="3").page_count == 3

    def test_numeric_fields_are_ints(self, enricher, context):
        event = enrich(
            enricher,
            context,
            page_load_time="1234.5",
            scroll_depth=55.2,
            click_x="100",
            click_y=None,
            screen_width="wide",
        )
        assert event.page_load_time == 1234
        assert event.scroll_depth == 55
        assert event.click_x == 100
        assert event.click_y == 0
        assert event.screen_width == 0
        for field, default in NUMERIC_DEFAULTS.items():
            value = getattr(event, field)
            assert isinstance(value, int) and not isinstance(value, bool)
            if field not in ("page_load_time", "scroll_depth", "click_x"):
                assert value == default

    def test_string_fields_never_null(self, enricher, context):
        event = enrich(enricher, context, element_id=None, page_title=123)
        assert event.element_id == ""
        assert event.page_title == "123"
        for field in STRING_FIELDS:
            assert isinstance(getattr(event, field), str)


class TestProperties:
    def test_unknown_fields_kept_in_properties(self, enricher, context):
        event = enrich(enricher, context, load_time=800, scroll_percentage=42.5)
        assert event.properties == {"load_time": 800, "scroll_percentage": 42.5}

    def test_client_properties_merged(self, enricher, context):
        event = enrich(enricher, context, properties={"plan": "pro"}, custom_name="signup")
        assert event.properties == {"plan": "pro", "custom_name": "signup"}

    def test_known_fields_not_duplicated(self, enricher, context):
        event = enrich(enricher, context, element_id="cta", browser="X")
        assert event.properties == {}


def test_enrichment_is_deterministic_apart_from_generated_id(enricher, context):
    raw = make_event(timestamp="2026-02-10T12:00:00Z", click_x="5", referrer="https://a.test")
    first = enricher.enrich(validate_event(raw), context)
    second = enricher.enrich(validate_event(raw), context)
    assert first.event_id != second.event_id
    assert first.model_dump(exclude={"event_id"}) == second.model_dump(exclude={"event_id"})

    raw["event_id"] = "fixed"
    assert enricher.enrich(validate_event(raw), context) == enricher.enrich(
        validate_event(raw), context
    )


def test_enriched_event_is_frozen(enricher, context):
    event = enrich(enricher, context)
    with pytest.raises(Exception):
        event.country = "FR"


def test_enrichment_leaves_input_untouched(enricher, context):
    raw = make_event(click_x="5")
    snapshot = dict(raw)
    enricher.enrich(validate_event(raw), context)
    assert raw == snapshot
