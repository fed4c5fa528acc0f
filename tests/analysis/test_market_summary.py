import asyncio
from decimal import Decimal

import pytest

from analysis.market_summary import (
    analyze_opportunities,
    classify_trend,
    classify_volatility,
    gather_market_summaries,
    summarize_market,
)
from models.adapters.static import StaticOracle


def test_volatility_buckets():
    assert classify_volatility([100.0]) == "N/A"
    assert classify_volatility([100.0] * 24) == "Low"
    assert classify_volatility([100.0, 100.8] * 12) == "Medium"
    assert classify_volatility([100.0, 103.0] * 12) == "High"


@pytest.mark.parametrize(
    "prices,expected",
    [
        ([100.0] * 5, "Insufficient data"),
        ([100.0] * 12, "Sideways"),
        ([100.0] * 9 + [110.0] * 3, "Strong uptrend"),
        ([100.0] * 9 + [102.0] * 3, "Moderate uptrend"),
        ([100.0] * 9 + [90.0] * 3, "Strong downtrend"),
        ([100.0] * 9 + [98.0] * 3, "Moderate downtrend"),
    ],
)
def test_trend_classification(prices, expected):
    assert classify_trend(prices) == expected


def test_summarize_market(btc_contract):
    candles = [{"price_close": "100"}, {"price_close": "110"}]
    book = {"bids": [{"price": "99"}], "asks": [{"price": "100"}]}
    trades = [{"taker_side": "buy"}, {"taker_side": "buy"}, {"taker_side": "sell"}, {"taker_side": "buy"}]

    summary = summarize_market(btc_contract, {"open_interest": "12"}, candles, book, trades)

    assert summary["symbol"] == "BTC-PERP"
    assert summary["price_change_24h"] == "10.00%"
    assert summary["bid_ask_spread"] == "1.00%"
    assert summary["buy_sell_ratio"] == "75% buy / 25% sell"
    assert summary["open_interest"] == "12"
    assert summary["price_trend"] == "Insufficient data"


def test_gather_selects_most_traded(contracts, mocker):
    client = mocker.Mock()
    client.get_contract = mocker.AsyncMock(return_value={})
    client.price_history = mocker.AsyncMock(return_value=[{"price_close": "1"}] * 6)
    client.order_book = mocker.AsyncMock(return_value={"bids": [], "asks": []})
    client.latest_trades = mocker.AsyncMock(return_value=[])

    summaries = asyncio.run(gather_market_summaries(client, contracts, limit=2))

    assert [item["symbol"] for item in summaries] == ["BTC-PERP", "ETH-PERP"]
    assert summaries[0]["buy_sell_ratio"] == "50% buy / 50% sell"
    assert client.price_history.await_count == 2


def test_analyze_opportunities_parses_narrative():
    narrative = "Opportunity 1:\nContract: BTC-PERP\nAction: Buy\nEntry Price: 81,000\n"
    oracle = StaticOracle([narrative])

    text, candidates = asyncio.run(analyze_opportunities(oracle, [{"symbol": "BTC-PERP", "mark_price": Decimal("1")}]))

    assert text == narrative
    assert candidates[0].symbol_hint == "BTC-PERP"
    assert candidates[0].entry_price_hint == "81,000"
    system, user = oracle.calls[0]
    assert "Opportunity N:" in system["content"]
    assert '"symbol": "BTC-PERP"' in user["content"]
