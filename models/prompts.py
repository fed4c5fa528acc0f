"""
Prompt templates for the instruction and market-analysis oracles.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Final, Mapping, Sequence

PROMPT_OVERRIDE_DIR: Final = Path("data/state/prompts")

INSTRUCTION_SYSTEM_TEMPLATE: Final = (
    "You are a trading assistant that parses natural language requests into "
    "structured order parameters.\n"
    "Available contracts:\n"
    "{contracts}\n\n"
    "Extract these parameters from the user's input:\n"
    "1. contract: Symbol or ID of the contract to trade\n"
    '2. orderSide: "buy" or "sell"\n'
    '3. orderType: "market" or "limit"\n'
    "4. quantity: The amount to trade in contracts (decimal)\n"
    '5. limitPrice: If orderType is "limit", the limit price\n'
    '6. timeInForce: "GTC", "IOC", "FOK" or "PO"\n'
    "7. reduceOnly: true or false\n\n"
    "Return a JSON object with exactly these keys. For any field you cannot "
    "confidently determine from the input, set it to null. Never guess the "
    "side or the quantity."
)

ANALYSIS_SYSTEM_PROMPT: Final = (
    "You are a professional crypto trading analyst. Analyze the market data "
    "for different futures contracts and suggest trading opportunities.\n\n"
    "For each contract, consider price trend and momentum, volatility, "
    "buy/sell pressure, bid-ask spread, deviation from index and volume.\n\n"
    "Provide 1-3 opportunities. Start each one with a line 'Opportunity N:' "
    "followed by these labeled lines:\n"
    "Contract: <symbol>\n"
    "Action: <Buy or Sell>\n"
    "Entry Price: <price>\n"
    "Stop Loss: <price>\n"
    "Take Profit: <price>\n"
    "Position Size: <small, medium or large>\n"
    "Risk Level: <low, medium or high>\n"
    "Rationale: <at most two sentences>\n\n"
    "Be specific, practical and concise."
)


def load_template(name: str, default: str) -> str:
    """Return an operator-edited template from disk or the built-in default."""
    try:
        text = (PROMPT_OVERRIDE_DIR / f"{name}.txt").read_text(encoding="utf-8")
    except FileNotFoundError:
        return default
    return text.strip() or default


def build_instruction_system_prompt(contract_listing: str) -> str:
    template = load_template("instruction", INSTRUCTION_SYSTEM_TEMPLATE)
    return apply_template(template, {"contracts": contract_listing or "None"})


def build_analysis_prompt(summaries: Sequence[Mapping[str, Any]]) -> str:
    payload = json.dumps(list(summaries), indent=2, default=str)
    return f"Here is the market data for analysis:\n{payload}"


def apply_template(template: str, values: Mapping[str, Any]) -> str:
    try:
        return template.format_map(_PromptContext(values))
    except (ValueError, IndexError):
        return INSTRUCTION_SYSTEM_TEMPLATE.format_map(_PromptContext(values))


class _PromptContext(dict):
    """Gracefully handle missing keys during template formatting."""

    def __missing__(self, key: str) -> str:
        return f"{{{key}}}"
