"""
Market analysis feeding the opportunity narrative oracle.
"""

from .market_summary import analyze_opportunities, classify_trend, classify_volatility  # noqa: F401
