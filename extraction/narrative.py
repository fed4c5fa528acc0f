"""
Best-effort extraction of trade ideas from analyst narrative text.

The analysis oracle is asked to emit blocks headed ``Opportunity N:`` with
labeled lines (``Contract:``, ``Action:``, ``Entry Price:`` ...), but real
answers drift: Markdown bold, bullets, missing labels, prose instead of
fields. Each field therefore has its own small extractor that tries the
label first, then a looser pattern, and falls back to a fixed default. The
extractors never raise, so one malformed field cannot drop a candidate and
one malformed block cannot abort the scan.

When no ``Opportunity`` header is present at all, a relaxed pass looks for
``SYMBOL ... buy|sell ... PRICE`` on a single line, where a number
followed by a unit such as ``contracts`` is a quantity, not a price.
"""

from __future__ import annotations

import functools
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, List, Optional, Sequence, Tuple, TypeVar

from orders.schemas import OpportunityCandidate

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_POSITION_SIZE = "small"
DEFAULT_RISK_LEVEL = "medium"

_EXTRACTION_ERRORS = (ValueError, TypeError, IndexError, AttributeError, KeyError, ArithmeticError, re.error)

_HEADER = re.compile(r"^[ \t#*_>\-]*opportunity[ \t]*#?[ \t]*(\d+)\b[^\n]*$", re.IGNORECASE | re.MULTILINE)
_NUMBER = re.compile(r"\d[\d,]*(?:\.\d+)?")
_SYMBOL_TOKEN = re.compile(r"[A-Za-z0-9]+(?:[-/_][A-Za-z0-9]+)+")
_BARE_SYMBOL = re.compile(r"\b[A-Z][A-Z0-9]*(?:-[A-Z0-9]+)+\b")
_WORD = re.compile(r"[A-Za-z0-9]+")
_ACTION_WORD = re.compile(r"\b(buy|long|sell|short)\b(?!-)", re.IGNORECASE)
_SIZE_WORD = re.compile(r"\b(small|medium|large)\b", re.IGNORECASE)
_RISK_WORD = re.compile(r"\b(low|medium|high)\b", re.IGNORECASE)
_PERCENT = re.compile(r"(\d+(?:\.\d+)?)\s*%")
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+|\n+")
_SIGNAL = re.compile(
    r"(?P<symbol>\b[A-Z][A-Z0-9]*(?:-[A-Z0-9]+)+\b)"
    r"[^\n]{0,80}?\b(?P<action>(?i:buy|sell|long|short))\b(?!-)"
)
_PRICE_CUE = re.compile(
    r"(?:@|\b(?:at|near|around|price|entry)\b)[^\d\n]{0,20}?(?P<price>\d[\d,]*(?:\.\d+)?)", re.IGNORECASE
)
_QUANTITY_UNIT = re.compile(r"\s*(?:contracts?\b|lots?\b|units?\b|x\b|%)", re.IGNORECASE)

_SYMBOL_LABELS = ("Contract Symbol", "Contract", "Symbol", "Instrument", "Market", "Pair")
_ACTION_LABELS = ("Action", "Direction", "Side", "Trade")
_ENTRY_LABELS = ("Entry Price Recommendation", "Entry Price", "Entry Point", "Entry Zone", "Entry", "Price")
_STOP_LABELS = ("Suggested Stop Loss", "Stop Loss", "Stop", "SL")
_TARGET_LABELS = ("Suggested Take Profit", "Take Profit", "Target Price", "Target", "TP")
_SIZE_LABELS = ("Position Size Recommendation", "Position Size", "Size", "Allocation")
_RISK_LABELS = ("Risk Level", "Risk")
_RATIONALE_LABELS = ("Brief Rationale", "Rationale", "Reasoning", "Reason")

_ENTRY_KEYWORDS = r"entry(?:[ \t]+price)?|enter(?:[ \t]+at)?|(?:buy|sell|long|short)[ \t]+at|price"
_STOP_KEYWORDS = r"stop[ \t\-]*loss|stop|sl"
_TARGET_KEYWORDS = r"take[ \t\-]*profit|target|tp"


def _total(default: Any) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Turn an extractor into a total function returning ``default`` on failure."""

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return func(*args, **kwargs)
            except _EXTRACTION_ERRORS as exc:
                logger.debug("Extractor %s degraded to default: %s", func.__name__, exc)
                return default

        return wrapper

    return decorator


def from_narrative(text: Any) -> List[OpportunityCandidate]:
    """Extract opportunity candidates from free-form analysis text."""
    if not isinstance(text, str) or not text.strip():
        return []
    blocks = _split_blocks(text)
    if not blocks:
        return _relaxed_scan(text)
    candidates: List[OpportunityCandidate] = []
    for position, (number, block) in enumerate(blocks, start=1):
        candidate = _build_candidate(number or position, block)
        if candidate is not None:
            candidates.append(candidate)
    logger.info("Extracted %d opportunity candidate(s) from narrative", len(candidates))
    return candidates


@_total(default=[])
def _split_blocks(text: str) -> List[Tuple[Optional[int], str]]:
    headers = list(_HEADER.finditer(text))
    blocks: List[Tuple[Optional[int], str]] = []
    for index, match in enumerate(headers):
        end = headers[index + 1].start() if index + 1 < len(headers) else len(text)
        blocks.append((_header_number(match.group(1)), text[match.start() : end]))
    return blocks


@_total(default=None)
def _header_number(raw: str) -> Optional[int]:
    return int(raw)


@_total(default=None)
def _build_candidate(number: int, block: str) -> Optional[OpportunityCandidate]:
    return OpportunityCandidate(
        number=number,
        symbol_hint=extract_symbol(block),
        action=extract_action(block),
        entry_price_hint=extract_price(block, _ENTRY_LABELS, _ENTRY_KEYWORDS),
        stop_loss_hint=extract_price(block, _STOP_LABELS, _STOP_KEYWORDS),
        take_profit_hint=extract_price(block, _TARGET_LABELS, _TARGET_KEYWORDS),
        position_size_hint=extract_position_size(block),
        risk_level_hint=extract_risk_level(block),
        rationale=extract_rationale(block),
    )


@_total(default=[])
def _relaxed_scan(text: str) -> List[OpportunityCandidate]:
    candidates: List[OpportunityCandidate] = []
    for match in _SIGNAL.finditer(text):
        line_start = text.rfind("\n", 0, match.start()) + 1
        line_end = text.find("\n", match.end())
        if line_end == -1:
            line_end = len(text)
        price = _relaxed_price(text[match.end() : line_end])
        if price is None:
            continue
        line = text[line_start:line_end]
        candidates.append(
            OpportunityCandidate(
                number=len(candidates) + 1,
                symbol_hint=match.group("symbol"),
                action=_normalize_action(match.group("action")),
                entry_price_hint=price,
                rationale=_strip_decoration(line),
            )
        )
    if candidates:
        logger.info("Relaxed scan found %d opportunity candidate(s)", len(candidates))
    return candidates


def _relaxed_price(rest: str) -> Optional[str]:
    """Price after the side word: a cued number first, else the first one that is not a quantity."""
    cued = _PRICE_CUE.search(rest)
    if cued:
        return _clean_number(cued.group("price"))
    for number in _NUMBER.finditer(rest):
        if not _QUANTITY_UNIT.match(rest, number.end()):
            return _clean_number(number.group(0))
    return None


# ----------------------------------------------------------------------
# Field extractors
# ----------------------------------------------------------------------
@_total(default=None)
def extract_symbol(block: str) -> Optional[str]:
    value = labeled_value(block, _SYMBOL_LABELS)
    if value:
        token = _SYMBOL_TOKEN.search(value) or _WORD.search(value)
        if token:
            return token.group(0)
    bare = _BARE_SYMBOL.search(block)
    return bare.group(0) if bare else None


@_total(default=None)
def extract_action(block: str) -> Optional[str]:
    value = labeled_value(block, _ACTION_LABELS)
    if value:
        action = _first_action(value)
        if action:
            return action
    return _first_action(block)


def extract_price(block: str, labels: Sequence[str], keywords: str) -> Optional[str]:
    return _labeled_price(block, labels) or _nearby_price(block, keywords)


@_total(default=DEFAULT_POSITION_SIZE)
def extract_position_size(block: str) -> str:
    value = labeled_value(block, _SIZE_LABELS)
    if not value:
        return DEFAULT_POSITION_SIZE
    word = _SIZE_WORD.search(value)
    if word:
        return word.group(1).lower()
    percent = _PERCENT.search(value)
    if percent:
        share = Decimal(percent.group(1))
        if share <= 2:
            return "small"
        if share <= 5:
            return "medium"
        return "large"
    return DEFAULT_POSITION_SIZE


@_total(default=DEFAULT_RISK_LEVEL)
def extract_risk_level(block: str) -> str:
    value = labeled_value(block, _RISK_LABELS)
    word = _RISK_WORD.search(value) if value else None
    return word.group(1).lower() if word else DEFAULT_RISK_LEVEL


@_total(default="")
def extract_rationale(block: str) -> str:
    value = labeled_value(block, _RATIONALE_LABELS)
    if value:
        return value
    pieces = [_strip_decoration(piece) for piece in _SENTENCE_BREAK.split(block)]
    pieces = [piece for piece in pieces if piece]
    return pieces[-1] if pieces else ""


@_total(default=None)
def labeled_value(block: str, labels: Sequence[str]) -> Optional[str]:
    """Return the text after ``Label:`` on the first matching line."""
    match = _label_pattern(tuple(labels)).search(block)
    if not match:
        return None
    value = match.group("value").strip()
    return value or None


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------
@functools.lru_cache(maxsize=None)
def _label_pattern(labels: Tuple[str, ...]) -> re.Pattern[str]:
    alternatives = "|".join(
        label.replace(" ", r"[ \t\-_]*") for label in sorted(labels, key=len, reverse=True)
    )
    return re.compile(
        r"^[ \t>*•\-]*(?:\d+[.)][ \t]*)?[*_]*[ \t]*"
        rf"(?:{alternatives})"
        r"[ \t]*[*_]*[ \t]*[:：][ \t]*[*_]*[ \t]*(?P<value>[^\n]*?)[ \t*_]*$",
        re.IGNORECASE | re.MULTILINE,
    )


@_total(default=None)
def _labeled_price(block: str, labels: Sequence[str]) -> Optional[str]:
    value = labeled_value(block, labels)
    if not value:
        return None
    match = _NUMBER.search(value)
    return _clean_number(match.group(0)) if match else None


@_total(default=None)
def _nearby_price(block: str, keywords: str) -> Optional[str]:
    pattern = re.compile(rf"\b(?:{keywords})\b[^\d\n]{{0,40}}?(?P<price>\d[\d,]*(?:\.\d+)?)", re.IGNORECASE)
    match = pattern.search(block)
    return _clean_number(match.group("price")) if match else None


def _clean_number(raw: str) -> Optional[str]:
    text = raw.rstrip(",")
    try:
        Decimal(text.replace(",", ""))
    except InvalidOperation:
        return None
    return text or None


def _first_action(text: str) -> Optional[str]:
    match = _ACTION_WORD.search(text)
    return _normalize_action(match.group(1)) if match else None


def _normalize_action(word: str) -> Optional[str]:
    lowered = word.lower()
    if lowered in {"buy", "long"}:
        return "buy"
    if lowered in {"sell", "short"}:
        return "sell"
    return None


def _strip_decoration(text: str) -> str:
    return text.strip().strip("*_#>-• \t").strip()


def parse_price_hint(hint: Optional[str]) -> Optional[Decimal]:
    """Convert a price hint such as ``"82,000"`` into a ``Decimal``."""
    if not hint:
        return None
    try:
        value = Decimal(hint.replace(",", "").strip())
    except InvalidOperation:
        return None
    return value if value.is_finite() and value > 0 else None
