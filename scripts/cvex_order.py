"""
Command-line entry point for drafting, estimating and placing CVEX orders.

Usage examples:
    python scripts/cvex_order.py config --api-key KEY --private-key-path ~/.cvex/key.pem

    python scripts/cvex_order.py place \
        --contract BTC-PERP --side buy --type limit --quantity 0.5 --price 82000

    python scripts/cvex_order.py instruct "buy 0.1 ETH-PERP at market"

    python scripts/cvex_order.py analyze --top 3

Every order is estimated and shown before the operator is asked to confirm;
only an explicit "yes" submits it.

Environment variables (override ~/.cvex-cli/config.json):
    CVEX_API_URL
    CVEX_API_KEY
    CVEX_PRIVATE_KEY_PATH
    CVEX_OPENAI_API_KEY
    CVEX_DEEPSEEK_API_KEY
    CVEX_ORACLE_MODEL
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import logging.config
import sys
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional

from config import VenueConfig
from exchanges.cvex.client import CvexClient, CvexClientError
from exchanges.cvex.signing import RequestSigner, SigningError
from exchanges.cvex.transform import extract_equity, parse_contracts
from analysis.market_summary import analyze_opportunities, gather_market_summaries
from extraction.contracts import ContractDirectory, UnresolvedContractError
from extraction.drafts import to_draft
from extraction.instruction import from_instruction
from models.bootstrap import build_default_registry
from models.errors import OracleError
from orders.lifecycle import OrderLifecycle, describe_estimate
from orders.schemas import (
    EstimationRejected,
    OrderDraft,
    OrderEstimate,
    Provenance,
    SubmissionAccepted,
    SubmissionErrored,
    ValidatedOrder,
)
from orders.validation import DraftValidationError

logger = logging.getLogger("cvex_order")

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s | %(levelname)s %(name)s | %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        }
    },
    "handlers": {
        "default": {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "stream": "ext://sys.stderr",
        }
    },
    "root": {"handlers": ["default"], "level": "INFO"},
}

AFFIRMATIVE_ANSWERS = {"yes", "y"}
# Attempts allowed when the venue refuses an estimate and the operator edits the draft.
MAX_ESTIMATE_ATTEMPTS = 3


def main(argv: Optional[List[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging_config = json.loads(json.dumps(LOGGING_CONFIG))
    if args.verbose:
        logging_config["root"]["level"] = "DEBUG"
    logging.config.dictConfig(logging_config)

    config = VenueConfig.load(args.config_file)
    if args.command == "config":
        _configure(config, args)
        return
    if args.command == "show-config":
        print(json.dumps(config.redacted(), indent=2))
        return

    try:
        exit_code = asyncio.run(_dispatch(config, args))
    except (CvexClientError, SigningError, OracleError, UnresolvedContractError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nAborted.", file=sys.stderr)
        sys.exit(130)
    sys.exit(exit_code)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CVEX futures order helper")
    parser.add_argument("--config-file", help="Alternative config file path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    config_parser = subparsers.add_parser("config", help="Store API credentials and settings")
    config_parser.add_argument("--api-url", help="CVEX API base URL")
    config_parser.add_argument("--api-key", help="Read-only API key")
    config_parser.add_argument("--private-key-path", help="Path to the Ed25519 PEM private key")
    config_parser.add_argument("--openai-api-key", help="OpenAI API key")
    config_parser.add_argument("--deepseek-api-key", help="DeepSeek API key")
    config_parser.add_argument("--oracle-model", help="Oracle used for instructions and analysis")
    config_parser.add_argument("--recv-window", type=int, help="Order validity window in milliseconds")

    subparsers.add_parser("show-config", help="Print the current configuration with secrets masked")
    subparsers.add_parser("contracts", help="List active futures contracts")

    place_parser = subparsers.add_parser("place", help="Place an order from explicit parameters")
    place_parser.add_argument("--contract", help="Contract id or symbol")
    place_parser.add_argument("--side", choices=["buy", "sell"], help="Order side")
    place_parser.add_argument("--type", default="market", choices=["market", "limit"], help="Order type")
    place_parser.add_argument("--quantity", help="Order quantity")
    place_parser.add_argument(
        "--unit",
        default="contracts",
        choices=["steps", "contracts", "assets"],
        help="Unit of --quantity",
    )
    place_parser.add_argument("--price", help="Limit price (required for limit)")
    place_parser.add_argument("--tif", default="GTC", choices=["GTC", "IOC", "FOK", "PO"], help="Time in force")
    place_parser.add_argument("--reduce-only", action="store_true", help="Only reduce an existing position")

    instruct_parser = subparsers.add_parser("instruct", help="Place an order from a natural-language instruction")
    instruct_parser.add_argument("instruction", help='e.g. "sell 2 contracts of BTC-PERP at 84000 limit"')
    instruct_parser.add_argument("--model", help="Oracle model id (defaults to config)")

    analyze_parser = subparsers.add_parser("analyze", help="Analyze markets and trade a suggested opportunity")
    analyze_parser.add_argument("--top", type=int, default=3, help="Number of most active contracts to analyze")
    analyze_parser.add_argument("--model", help="Oracle model id (defaults to config)")
    return parser


def _configure(config: VenueConfig, args: argparse.Namespace) -> None:
    updates = {
        "api_url": args.api_url,
        "api_key": args.api_key,
        "private_key_path": args.private_key_path,
        "openai_api_key": args.openai_api_key,
        "deepseek_api_key": args.deepseek_api_key,
        "oracle_model": args.oracle_model,
        "recv_window": args.recv_window,
    }
    for name, value in updates.items():
        if value is not None:
            setattr(config, name, value)
    config.api_url = config.api_url.rstrip("/")
    path = config.save(args.config_file)
    print(f"Configuration saved to {path}")
    print(json.dumps(config.redacted(), indent=2))


async def _dispatch(config: VenueConfig, args: argparse.Namespace) -> int:
    signer = None
    if args.command in {"place", "instruct", "analyze"}:
        signer = RequestSigner.from_file(config.private_key_path)
        logger.info("Signing identity %s", signer.identity_hex)

    async with CvexClient(config, signer=signer) as client:
        contracts = ContractDirectory(parse_contracts(await client.list_contracts()))
        logger.info("Loaded %d active contracts", len(contracts))
        if args.command == "contracts":
            print(contracts.describe() or "No active contracts.")
            return 0

        if args.command == "place":
            draft = _draft_from_args(args, contracts)
            return await _run_lifecycle(draft, client, contracts, config)

        registry = build_default_registry(config)
        try:
            oracle = registry.get(args.model or config.oracle_model)
            if args.command == "instruct":
                draft = await from_instruction(args.instruction, contracts, oracle)
                return await _run_lifecycle(draft, client, contracts, config)
            return await _analyze(args, client, contracts, oracle, config)
        finally:
            await registry.aclose()


def _draft_from_args(args: argparse.Namespace, contracts: ContractDirectory) -> OrderDraft:
    draft = OrderDraft(
        contract_ref=args.contract,
        side=args.side,
        order_type=args.type,
        time_in_force=args.tif,
        reduce_only=args.reduce_only,
    )
    confidence = draft.confidence
    if args.contract:
        draft.contract = contracts.resolve(args.contract)
        confidence["contract"] = Provenance.EXPLICIT
    else:
        confidence["contract"] = Provenance.MISSING
    confidence["side"] = Provenance.EXPLICIT if args.side else Provenance.MISSING
    quantity = _parse_decimal(args.quantity)
    setattr(draft, f"quantity_{args.unit}", quantity)
    confidence["quantity"] = Provenance.EXPLICIT if quantity is not None else Provenance.MISSING
    confidence["order_type"] = Provenance.EXPLICIT
    if args.type == "limit":
        draft.limit_price = _parse_decimal(args.price)
        confidence["limit_price"] = Provenance.EXPLICIT if draft.limit_price else Provenance.MISSING
    confidence["time_in_force"] = Provenance.EXPLICIT
    confidence["reduce_only"] = Provenance.EXPLICIT
    return draft


async def _analyze(
    args: argparse.Namespace,
    client: CvexClient,
    contracts: ContractDirectory,
    oracle,
    config: VenueConfig,
) -> int:
    summaries = await gather_market_summaries(client, contracts, limit=args.top)
    if not summaries:
        print("No market data available for analysis.")
        return 1
    narrative, candidates = await analyze_opportunities(oracle, summaries)
    print("\n=== AI TRADING ANALYSIS ===\n")
    print(narrative)
    if not candidates:
        print("\nNo structured opportunities could be extracted from the analysis.")
        return 0

    print("\nOpportunities:")
    for candidate in candidates:
        print(
            f"  {candidate.number}. {candidate.symbol_hint or '?'} "
            f"{(candidate.action or '?').upper()} entry={candidate.entry_price_hint or 'market'} "
            f"size={candidate.position_size_hint} risk={candidate.risk_level_hint}"
        )
    choice = _ask("Select an opportunity number to trade (blank to skip): ")
    if not choice:
        return 0
    selected = next((item for item in candidates if str(item.number) == choice), None)
    if selected is None:
        print(f"No opportunity numbered {choice}.")
        return 1

    equity = extract_equity(await client.portfolio_overview())
    draft = to_draft(selected, contracts, equity)
    return await _run_lifecycle(draft, client, contracts, config)


async def _run_lifecycle(
    draft: OrderDraft,
    client: CvexClient,
    contracts: ContractDirectory,
    config: VenueConfig,
) -> int:
    _complete_draft(draft, contracts)
    lifecycle = OrderLifecycle(draft, client, recv_window=config.recv_window)

    estimate = None
    for _ in range(MAX_ESTIMATE_ATTEMPTS):
        _print_draft(lifecycle.draft)
        try:
            estimate = await lifecycle.estimate()
        except DraftValidationError as exc:
            print(f"Order is invalid: {exc}")
            return 1
        if not isinstance(estimate, EstimationRejected):
            break
        print(f"Estimation failed: {estimate.reason}")
        if _ask("Edit the order and try again? (yes/no): ").lower() not in AFFIRMATIVE_ANSWERS:
            lifecycle.cancel()
            print("Order cancelled.")
            return 1
        lifecycle.update_draft(**_prompt_edits(lifecycle.draft))
    else:
        lifecycle.cancel()
        print("Order cancelled after repeated estimation failures.")
        return 1

    if not await lifecycle.confirm(_confirm_on_terminal):
        print("Order cancelled.")
        return 0

    outcome = await lifecycle.submit()
    if isinstance(outcome, SubmissionAccepted):
        print("\nOrder placed successfully!")
        print(f"Customer order id: {outcome.customer_order_id}")
        print(f"Transaction hash: {outcome.transaction_hash or 'N/A'}")
        return 0
    if isinstance(outcome, SubmissionErrored):
        print(f"\nSubmission of {outcome.customer_order_id} failed: {outcome.cause}")
        print("The order may or may not have reached the venue; check open orders before retrying.")
        return 1
    print(f"\nOrder {outcome.customer_order_id} rejected")
    print(f"Status: {outcome.status}")
    print(f"Error code: {outcome.code or 'N/A'}")
    print(f"Error message: {outcome.message or 'N/A'}")
    return 1


def _complete_draft(draft: OrderDraft, contracts: ContractDirectory) -> None:
    """Ask the operator for every field that could not be determined."""
    while draft.contract is None:
        reference = _ask("Contract (id or symbol): ")
        contract = contracts.find(reference)
        if contract is None:
            print(f"Unknown contract '{reference}'.")
            continue
        draft.contract = contract
        draft.contract_ref = reference
        draft.confidence["contract"] = Provenance.EXPLICIT

    while draft.side not in ("buy", "sell"):
        answer = _ask("Order side (buy/sell): ").lower()
        if answer in ("buy", "sell"):
            draft.side = answer
            draft.confidence["side"] = Provenance.EXPLICIT

    while not draft.quantities():
        value = _parse_decimal(_ask("Quantity in contracts: "))
        if value is not None and value > 0:
            draft.quantity_contracts = value
            draft.confidence["quantity"] = Provenance.EXPLICIT

    while draft.order_type == "limit" and not draft.limit_price:
        value = _parse_decimal(_ask("Limit price: "))
        if value is not None and value > 0:
            draft.limit_price = value
            draft.confidence["limit_price"] = Provenance.EXPLICIT


def _prompt_edits(draft: OrderDraft) -> dict:
    changes = {}
    quantity = _parse_decimal(_ask("New quantity in contracts (blank to keep): "))
    if quantity is not None:
        changes.update(quantity_steps=None, quantity_contracts=quantity, quantity_assets=None)
    if draft.order_type == "limit":
        price = _parse_decimal(_ask("New limit price (blank to keep): "))
        if price is not None:
            changes["limit_price"] = price
    return changes


def _confirm_on_terminal(order: ValidatedOrder, estimate: OrderEstimate) -> bool:
    print("\n=== ORDER ESTIMATION ===")
    print(describe_estimate(order, estimate))
    return _ask("\nDo you want to execute this order? (yes/no): ").lower() in AFFIRMATIVE_ANSWERS


def _print_draft(draft: OrderDraft) -> None:
    print("\n=== ORDER DRAFT ===")
    for label, value, key in _draft_rows(draft):
        source = draft.confidence.get(key)
        marker = f" [{source.value}]" if source and source is not Provenance.EXPLICIT else ""
        print(f"{label + ':':<16} {value}{marker}")
    extras = {key: value for key, value in draft.metadata.items() if value not in (None, "")}
    if extras:
        print("Analysis hints:")
        for key, value in extras.items():
            print(f"  {key}: {value}")


def _draft_rows(draft: OrderDraft) -> Iterable[tuple]:
    contract = draft.contract
    quantities = draft.quantities()
    quantity = ", ".join(f"{value} {unit}" for unit, value in quantities.items()) or "N/A"
    return (
        ("Contract", f"{contract.symbol} (ID: {contract.contract_id})" if contract else "N/A", "contract"),
        ("Side", (draft.side or "N/A").upper(), "side"),
        ("Quantity", quantity, "quantity"),
        ("Order type", draft.order_type.upper(), "order_type"),
        ("Limit price", draft.limit_price if draft.order_type == "limit" else "N/A", "limit_price"),
        ("Time in force", draft.time_in_force, "time_in_force"),
        ("Reduce only", draft.reduce_only, "reduce_only"),
    )


def _parse_decimal(raw: Optional[str]) -> Optional[Decimal]:
    if not raw:
        return None
    try:
        value = Decimal(raw.replace(",", "").strip())
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def _ask(prompt: str) -> str:
    return input(prompt).strip()


if __name__ == "__main__":
    main()
