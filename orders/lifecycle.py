"""
Order lifecycle: draft -> validated -> estimated -> confirmed -> submitted.

One ``OrderLifecycle`` drives one logical order strictly forward. Nothing
reaches the venue's order book until ``submit``; before that point the order
can be cancelled freely. ``submit`` runs at most once per lifecycle and never
retries: resubmitting means starting a new lifecycle, which gets its own
customer order id and its own confirmation.
"""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import logging
import time
import uuid
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence, Union

from config import DEFAULT_RECV_WINDOW_MS
from exchanges.base_client import VenueClient
from exchanges.cvex.client import ApiError, NetworkError
from exchanges.cvex.transform import parse_estimate, parse_submission_result
from orders.schemas import (
    EstimationRejected,
    OrderDraft,
    OrderEstimate,
    OrderSubmission,
    SubmissionAccepted,
    SubmissionErrored,
    SubmissionRejected,
    ValidatedOrder,
)
from orders.validation import DraftValidator

logger = logging.getLogger(__name__)

Confirmer = Callable[[ValidatedOrder, OrderEstimate], Union[bool, Awaitable[bool]]]
SubmissionOutcome = Union[SubmissionAccepted, SubmissionRejected, SubmissionErrored]


class LifecycleState(str, Enum):
    DRAFT = "draft"
    VALIDATED = "validated"
    ESTIMATED = "estimated"
    CONFIRMED = "confirmed"
    SUBMITTED = "submitted"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    ERRORED = "errored"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset(
    {LifecycleState.ACCEPTED, LifecycleState.REJECTED, LifecycleState.ERRORED, LifecycleState.CANCELLED}
)


class LifecycleStateError(RuntimeError):
    """Raised when an operation is attempted from the wrong state."""


class StaleEstimateError(LifecycleStateError):
    """Raised when the draft changed after it was estimated."""


@dataclass(slots=True)
class LifecycleResult:
    state: LifecycleState
    estimate: Optional[OrderEstimate] = None
    rejection: Optional[EstimationRejected] = None
    outcome: Optional[SubmissionOutcome] = None


def new_customer_order_id() -> str:
    return f"cli-{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}"


class OrderLifecycle:
    """State machine for a single order attempt."""

    def __init__(
        self,
        draft: OrderDraft,
        client: VenueClient,
        *,
        validator: DraftValidator | None = None,
        recv_window: int = DEFAULT_RECV_WINDOW_MS,
        clock: Callable[[], float] = time.time,
        order_id_factory: Callable[[], str] = new_customer_order_id,
    ) -> None:
        self._draft = draft
        self._client = client
        self._validator = validator or DraftValidator()
        self._recv_window = recv_window
        self._clock = clock
        self._order_id_factory = order_id_factory
        self._state = LifecycleState.DRAFT
        self._validated: Optional[ValidatedOrder] = None
        self._validated_fingerprint: Optional[tuple] = None
        self._estimate: Optional[OrderEstimate] = None
        self._submission: Optional[OrderSubmission] = None
        self._outcome: Optional[SubmissionOutcome] = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def draft(self) -> OrderDraft:
        return self._draft

    @property
    def validated(self) -> Optional[ValidatedOrder]:
        return self._validated

    @property
    def estimate_result(self) -> Optional[OrderEstimate]:
        return self._estimate

    @property
    def submission(self) -> Optional[OrderSubmission]:
        return self._submission

    @property
    def outcome(self) -> Optional[SubmissionOutcome]:
        return self._outcome

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def update_draft(self, **changes: Any) -> OrderDraft:
        """Change draft fields; any prior validation or estimate is discarded."""
        self._require(LifecycleState.DRAFT, LifecycleState.VALIDATED, LifecycleState.ESTIMATED)
        self._draft = dataclasses.replace(self._draft, **changes)
        self._reset_to_draft()
        return self._draft

    def validate(self) -> ValidatedOrder:
        """Draft -> Validated. Raises DraftValidationError and stays in Draft."""
        self._require(LifecycleState.DRAFT, LifecycleState.VALIDATED, LifecycleState.ESTIMATED)
        self._reset_to_draft()
        validated = self._validator.validate(self._draft)
        self._validated = validated
        self._validated_fingerprint = self._draft.fingerprint()
        self._state = LifecycleState.VALIDATED
        logger.debug("Draft validated: %s", validated)
        return validated

    async def estimate(self) -> OrderEstimate | EstimationRejected:
        """
        Validated -> Estimated. A venue refusal returns ``EstimationRejected``
        and moves the lifecycle back to Draft for correction.
        """
        if self._state is LifecycleState.DRAFT or self._draft_changed():
            self.validate()
        self._require(LifecycleState.VALIDATED, LifecycleState.ESTIMATED)
        if self._validated is None:
            raise LifecycleStateError("Order has not been validated")
        payload = self._validated.to_payload()
        logger.info("Estimating order: %s", payload)
        response = await self._client.estimate_order(payload)
        result = parse_estimate(response)
        if isinstance(result, EstimationRejected):
            logger.warning("Estimation rejected by venue: %s", result.reason)
            self._reset_to_draft()
            return result
        self._estimate = result
        self._state = LifecycleState.ESTIMATED
        return result

    async def confirm(self, confirmer: Confirmer) -> bool:
        """
        Estimated -> Confirmed when ``confirmer`` answers True; any other
        answer cancels the order.
        """
        self._require(LifecycleState.ESTIMATED)
        if self._draft_changed():
            self._reset_to_draft()
            raise StaleEstimateError("Draft changed after estimation; estimate again before confirming")
        if self._validated is None or self._estimate is None:
            raise LifecycleStateError("Order has not been estimated")
        answer = confirmer(self._validated, self._estimate)
        if inspect.isawaitable(answer):
            answer = await answer
        if answer is True:
            self._state = LifecycleState.CONFIRMED
            return True
        logger.info("Order cancelled by operator.")
        self._state = LifecycleState.CANCELLED
        return False

    def build_submission(self) -> OrderSubmission:
        """Fresh idempotency token and timestamp on every call."""
        if self._validated is None:
            raise LifecycleStateError("Order has not been validated")
        order = self._validated
        return OrderSubmission(
            customer_order_id=self._order_id_factory(),
            contract=str(order.contract.contract_id),
            order_type=order.order_type,
            limit_price=order.limit_price,
            time_in_force=order.time_in_force,
            reduce_only=order.reduce_only,
            quantity_unit=order.quantity_unit,
            quantity=order.quantity,
            timestamp=int(self._clock() * 1000),
            recv_window=self._recv_window,
        )

    async def submit(self) -> SubmissionOutcome:
        """
        Confirmed -> Submitted -> Accepted/Rejected/Errored.

        Signing failures propagate and leave the lifecycle in Confirmed.
        """
        self._require(LifecycleState.CONFIRMED)
        if self._draft_changed():
            self._reset_to_draft()
            raise StaleEstimateError("Draft changed after confirmation; estimate again before submitting")
        submission = self.build_submission()
        body_text = submission.serialize()
        logger.info("Submitting order %s", submission.customer_order_id)
        try:
            response = await self._client.place_order(body_text)
        except (NetworkError, ApiError) as exc:
            logger.error("Submission %s failed: %s", submission.customer_order_id, exc)
            self._submission = submission
            self._state = LifecycleState.ERRORED
            self._outcome = SubmissionErrored(customer_order_id=submission.customer_order_id, cause=exc)
            return self._outcome

        self._submission = submission
        self._state = LifecycleState.SUBMITTED
        outcome = parse_submission_result(response, submission.customer_order_id)
        if isinstance(outcome, SubmissionAccepted):
            logger.info(
                "Order %s accepted; transaction hash %s",
                submission.customer_order_id,
                outcome.transaction_hash or "N/A",
            )
            self._state = LifecycleState.ACCEPTED
        else:
            logger.warning(
                "Order %s rejected: status=%s code=%s message=%s",
                submission.customer_order_id,
                outcome.status,
                outcome.code,
                outcome.message,
            )
            self._state = LifecycleState.REJECTED
        self._outcome = outcome
        return outcome

    def cancel(self) -> None:
        if self._state in TERMINAL_STATES or self._state is LifecycleState.SUBMITTED:
            raise LifecycleStateError(f"Cannot cancel an order in state {self._state.value}")
        self._state = LifecycleState.CANCELLED

    async def run(self, confirmer: Confirmer) -> LifecycleResult:
        """Drive the whole lifecycle once."""
        self.validate()
        estimate = await self.estimate()
        if isinstance(estimate, EstimationRejected):
            return LifecycleResult(state=self._state, rejection=estimate)
        if not await self.confirm(confirmer):
            return LifecycleResult(state=self._state, estimate=estimate)
        outcome = await self.submit()
        return LifecycleResult(state=self._state, estimate=estimate, outcome=outcome)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _require(self, *states: LifecycleState) -> None:
        if self._state not in states:
            allowed = ", ".join(state.value for state in states)
            raise LifecycleStateError(f"Operation requires state {allowed}; current state is {self._state.value}")

    def _draft_changed(self) -> bool:
        return self._validated_fingerprint is not None and self._draft.fingerprint() != self._validated_fingerprint

    def _reset_to_draft(self) -> None:
        self._state = LifecycleState.DRAFT
        self._validated = None
        self._validated_fingerprint = None
        self._estimate = None


async def estimate_all(
    lifecycles: Iterable[OrderLifecycle],
) -> Sequence[OrderEstimate | EstimationRejected | BaseException]:
    """Estimate independent lifecycles concurrently; failures are returned in place."""
    tasks = [asyncio.create_task(lifecycle.estimate()) for lifecycle in lifecycles]
    results: List[Any] = await asyncio.gather(*tasks, return_exceptions=True)
    return results


def describe_estimate(order: ValidatedOrder, estimate: OrderEstimate) -> str:
    """Plain-text summary shown to the operator before confirmation."""
    rows = [
        ("Order", f"{order.side.upper()} {order.order_type.upper()} {abs(order.quantity)} {order.quantity_unit}"),
        ("Contract", f"{order.contract.symbol} (ID: {order.contract.contract_id})"),
        ("Limit Price", _display(order.limit_price)),
        ("Time in Force", order.time_in_force),
        ("Reduce Only", str(order.reduce_only)),
        ("Trading Fee", _display(estimate.trading_fee)),
        ("Operational Fee", _display(estimate.operational_fee)),
        ("Realized Profit", _display(estimate.realized_profit)),
        ("Current Equity", _display(estimate.current_equity)),
        ("New Equity", _display(estimate.new_equity)),
        ("Current Leverage", _display(estimate.current_leverage)),
        ("New Leverage", _display(estimate.new_leverage)),
        ("Est. Liquidation Price", _display(estimate.estimated_liquidation_price)),
    ]
    return "\n".join(f"{label + ':':<24} {value}" for label, value in rows)


def _display(value: Optional[Decimal]) -> str:
    return "N/A" if value is None else f"{value:,f}"
