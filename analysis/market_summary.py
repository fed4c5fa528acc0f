"""
Market summaries for the analysis oracle.

Collects candles, order book and recent trades for the most active contracts,
condenses them into a small dict per contract, and asks the oracle for
narrative opportunities which are then parsed by ``extraction.narrative``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Sequence, Tuple

import numpy as np
import pandas as pd

from exchanges.cvex.client import CvexClient
from extraction.narrative import from_narrative
from models.adapters.base import BaseOracleAdapter
from models.prompts import ANALYSIS_SYSTEM_PROMPT, build_analysis_prompt
from orders.schemas import Contract, OpportunityCandidate

logger = logging.getLogger(__name__)

HOURS_PER_YEAR = 24 * 365


def classify_volatility(prices: Sequence[float]) -> str:
    """Bucket annualized volatility of hourly closes into Low/Medium/High."""
    if prices is None or len(prices) < 2:
        return "N/A"
    returns = pd.Series(prices, dtype="float64").pct_change().dropna()
    if returns.empty:
        return "N/A"
    annualized = float(returns.std(ddof=0) * np.sqrt(HOURS_PER_YEAR) * 100)
    if np.isnan(annualized):
        return "N/A"
    if annualized < 50:
        return "Low"
    if annualized < 100:
        return "Medium"
    return "High"


def classify_trend(prices: Sequence[float]) -> str:
    """Compare the 3-period and 12-period means of recent closes."""
    if prices is None or len(prices) < 6:
        return "Insufficient data"
    closes = pd.Series(prices, dtype="float64")
    short_term = closes.tail(3).mean()
    long_term = closes.tail(12).mean()
    if short_term > long_term * 1.03:
        return "Strong uptrend"
    if short_term > long_term * 1.01:
        return "Moderate uptrend"
    if short_term < long_term * 0.97:
        return "Strong downtrend"
    if short_term < long_term * 0.99:
        return "Moderate downtrend"
    return "Sideways"


def summarize_market(
    contract: Contract,
    details: Dict[str, Any] | None,
    candles: Iterable[Dict[str, Any]],
    order_book: Dict[str, List[Dict[str, Any]]],
    trades: Iterable[Dict[str, Any]],
) -> Dict[str, Any]:
    details = details or {}
    prices = [float(candle["price_close"]) for candle in candles if candle.get("price_close") not in (None, "")]
    latest = prices[-1] if prices else 0.0
    change_pct = (latest - prices[0]) / prices[0] * 100 if prices and prices[0] else 0.0

    bids = order_book.get("bids") or []
    asks = order_book.get("asks") or []
    top_bid = float(bids[0]["price"]) if bids else 0.0
    top_ask = float(asks[0]["price"]) if asks else 0.0
    spread_pct = (top_ask - top_bid) / top_ask * 100 if top_ask > 0 and top_bid > 0 else 0.0

    sides = [trade.get("taker_side") for trade in trades]
    buy_pressure = sides.count("buy") / len(sides) * 100 if sides else 50.0

    return {
        "symbol": contract.symbol,
        "contract_id": contract.contract_id,
        "mark_price": details.get("mark_price", contract.mark_price),
        "last_price": details.get("last_price", contract.last_price),
        "index_price": details.get("index_price"),
        "price_change_24h": f"{change_pct:.2f}%",
        "volume_24h": details.get("volume_24h", contract.volume_24h),
        "open_interest": details.get("open_interest"),
        "bid_ask_spread": f"{spread_pct:.2f}%",
        "top_bid": top_bid,
        "top_ask": top_ask,
        "buy_sell_ratio": f"{buy_pressure:.0f}% buy / {100 - buy_pressure:.0f}% sell",
        "volatility": classify_volatility(prices),
        "price_trend": classify_trend(prices),
    }


async def gather_market_summaries(
    client: CvexClient,
    contracts: Iterable[Contract],
    *,
    limit: int = 3,
) -> List[Dict[str, Any]]:
    """Summaries for the ``limit`` contracts with the highest 24h volume."""
    selected = sorted(contracts, key=lambda contract: contract.volume_24h, reverse=True)[:limit]
    summaries: List[Dict[str, Any]] = []
    for contract in selected:
        logger.info("Analyzing %s...", contract.symbol)
        details = await client.get_contract(contract.contract_id)
        candles = await client.price_history(contract.contract_id, period="1h", count=24)
        book = await client.order_book(contract.contract_id)
        trades = await client.latest_trades(contract.contract_id, count=20)
        summaries.append(summarize_market(contract, details, candles, book, trades))
    return summaries


async def analyze_opportunities(
    oracle: BaseOracleAdapter,
    summaries: Sequence[Dict[str, Any]],
) -> Tuple[str, List[OpportunityCandidate]]:
    """Ask the oracle for opportunities and parse its narrative."""
    narrative = await oracle.interpret(build_analysis_prompt(summaries), system=ANALYSIS_SYSTEM_PROMPT)
    return narrative, from_narrative(narrative)
