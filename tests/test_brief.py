"""Tests for daily brief payloads."""

import json
import logging

import pytest

from watchtower_mcp.engine.aggregate import DailySignalSummary, summarize_daily
from watchtower_mcp.engine.brief import (
    CAUTION_LINES,
    FALLBACK_MODEL,
    MAX_INSIGHTS,
    MIN_INSIGHTS,
    build_fallback_brief,
    parse_model_output,
    resolve_brief,
)
from watchtower_mcp.utils.normalize import canonical_dumps


@pytest.fixture
def bare_summary() -> DailySignalSummary:
    return DailySignalSummary(
        date="2026-02-19",
        buy=["AAPL"],
        sell=["TSLA"],
        new_today=["AAPL"],
        dropped_off=[],
    )


@pytest.fixture
def full_summary(watchlist, day_events) -> DailySignalSummary:
    return summarize_daily(watchlist, day_events, "2026-02-19")


class TestBuildFallbackBrief:
    """Tests for build_fallback_brief."""

    def test_schema(self, bare_summary: DailySignalSummary) -> None:
        brief = build_fallback_brief(bare_summary)

        assert brief.summary
        assert brief.buy == ["AAPL"]
        assert brief.sell == ["TSLA"]
        assert brief.new_today == ["AAPL"]
        assert brief.dropped_off == []
        assert brief.model == FALLBACK_MODEL
        assert brief.is_fallback is True

    def test_deterministic(self, full_summary: DailySignalSummary) -> None:
        first = canonical_dumps(build_fallback_brief(full_summary).to_dict())
        second = canonical_dumps(build_fallback_brief(full_summary).to_dict())
        assert first == second

    def test_pads_to_minimum(self, bare_summary: DailySignalSummary) -> None:
        """Sparse input is padded with caution lines."""
        brief = build_fallback_brief(bare_summary)

        assert len(brief.insights) == MIN_INSIGHTS
        assert brief.insights[0] == "Active BUY signals: 1. Active SELL signals: 1."
        assert brief.insights[1] == "New signal entries today: AAPL."
        assert brief.insights[2:] == list(CAUTION_LINES[:2])

    def test_empty_summary_still_has_minimum(self) -> None:
        brief = build_fallback_brief(DailySignalSummary("2026-02-19", [], [], [], []))

        assert len(brief.insights) >= MIN_INSIGHTS
        assert len(set(brief.insights)) == len(brief.insights)
        assert brief.summary == (
            "Daily brief: 0 buy-side and 0 sell-side active signals across the watchlist."
        )

    def test_market_insights(self, full_summary: DailySignalSummary) -> None:
        brief = build_fallback_brief(full_summary)

        assert len(brief.insights) == MAX_INSIGHTS
        assert brief.insights[0] == "Active BUY signals: 2. Active SELL signals: 2."
        assert brief.insights[1] == "New signal entries today: BTC, NVDA."
        assert brief.insights[2] == "Dropped from signal zones today: TSLA."
        assert brief.insights[3] == (
            "Market breadth: 2 advancing, 1 declining, 2 flat. Avg change 1.16%."
        )
        assert brief.insights[4] == "Top gainers: BTC (3.20%), NVDA (1.80%), AAPL (0.04%)."
        assert brief.insights[5] == "Top losers: SPY (-0.40%), AAPL (0.04%), NVDA (1.80%)."

    def test_most_active_class(self, watchlist) -> None:
        """With no events the asset-class line fits under the cap."""
        brief = build_fallback_brief(summarize_daily(watchlist, [], "2026-02-19"))

        assert brief.insights[-1] == (
            "Most active class: STOCK with 1 active signals out of 2 tracked."
        )

    def test_summary_mentions_totals(self, full_summary: DailySignalSummary) -> None:
        brief = build_fallback_brief(full_summary)
        assert brief.summary.endswith("3 total active signals out of 5 assets.")


class TestParseModelOutput:
    """Tests for parse_model_output."""

    def test_valid_reply(self, bare_summary: DailySignalSummary) -> None:
        fallback = build_fallback_brief(bare_summary)
        reply = json.dumps(
            {
                "summary": "Quiet day.",
                "buy": ["aapl"],
                "newToday": [],
                "insights": ["Breadth was flat.", 42, ""],
            }
        )
        brief = parse_model_output(reply, fallback, model="test-model")

        assert brief.summary == "Quiet day."
        assert brief.buy == ["AAPL"]
        # Missing list falls back
        assert brief.sell == ["TSLA"]
        assert brief.new_today == []
        assert brief.insights == ["Breadth was flat."]
        assert brief.model == "test-model"
        assert brief.is_fallback is False

    @pytest.mark.parametrize(
        "reply",
        [
            "not json",
            "[]",
            json.dumps({"insights": ["x"]}),
            json.dumps({"summary": "   ", "insights": ["x"]}),
            json.dumps({"summary": "ok", "insights": "x"}),
        ],
    )
    def test_malformed_reply_falls_back(
        self, bare_summary: DailySignalSummary, reply: str, caplog
    ) -> None:
        fallback = build_fallback_brief(bare_summary)
        with caplog.at_level(logging.WARNING):
            assert parse_model_output(reply, fallback) is fallback
        assert "using fallback" in caplog.text


class TestResolveBrief:
    """Tests for resolve_brief."""

    @pytest.mark.parametrize("model_text", [None, "", "   "])
    def test_no_model_text(self, bare_summary: DailySignalSummary, model_text) -> None:
        brief = resolve_brief(bare_summary, model_text)
        assert brief.is_fallback is True

    def test_model_text(self, bare_summary: DailySignalSummary) -> None:
        reply = json.dumps({"summary": "From model.", "insights": ["a"]})
        brief = resolve_brief(bare_summary, reply, model="test-model")

        assert brief.is_fallback is False
        assert brief.summary == "From model."
