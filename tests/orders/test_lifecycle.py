import asyncio
import json
from decimal import Decimal

import httpx
import pytest

from exchanges.cvex.client import ApiError, CvexClient, NetworkError
from exchanges.cvex.signing import KeyUnavailableError, RequestSigner, verify
from orders.lifecycle import (
    LifecycleState,
    LifecycleStateError,
    OrderLifecycle,
    StaleEstimateError,
    describe_estimate,
    estimate_all,
)
from orders.schemas import (
    EstimationRejected,
    OrderDraft,
    OrderEstimate,
    SubmissionAccepted,
    SubmissionErrored,
    SubmissionRejected,
)
from orders.validation import DraftValidationError

ESTIMATE = {"trading_fee": "2.5", "new_equity": "9997.5", "new_leverage": "1.2"}


class FakeVenue:
    name = "fake"

    def __init__(self, estimates=None, placements=None):
        self.estimates = list(estimates or [ESTIMATE])
        self.placements = list(placements or [{"status": "success", "transaction_hash": "0xfeed"}])
        self.estimate_calls = []
        self.placed_bodies = []

    async def execute(self, method, path, body=None, *, params=None, requires_signing=False):
        raise NotImplementedError

    async def estimate_order(self, payload):
        self.estimate_calls.append(payload)
        return self.estimates.pop(0) if len(self.estimates) > 1 else self.estimates[0]

    async def place_order(self, body_text):
        self.placed_bodies.append(body_text)
        result = self.placements.pop(0) if len(self.placements) > 1 else self.placements[0]
        if isinstance(result, Exception):
            raise result
        return result

    async def aclose(self):
        return None


def _draft(contract, **overrides):
    values = dict(contract_ref=contract.symbol, contract=contract, side="buy", quantity_contracts=Decimal("0.5"))
    values.update(overrides)
    return OrderDraft(**values)


def _lifecycle(draft, venue, **kwargs):
    counter = iter(range(1, 100))
    kwargs.setdefault("clock", lambda: 1_700_000_000.0)
    kwargs.setdefault("order_id_factory", lambda: f"cli-test-{next(counter)}")
    return OrderLifecycle(draft, venue, **kwargs)


def yes(order, estimate):
    return True


def test_full_run_is_accepted(btc_contract):
    venue = FakeVenue()
    lifecycle = _lifecycle(_draft(btc_contract), venue)

    result = asyncio.run(lifecycle.run(yes))

    assert result.state is LifecycleState.ACCEPTED
    assert result.estimate.trading_fee == Decimal("2.5")
    assert isinstance(result.outcome, SubmissionAccepted)
    assert result.outcome.transaction_hash == "0xfeed"
    assert venue.estimate_calls == [
        {
            "contract": "1",
            "type": "market",
            "limit_price": "0",
            "time_in_force": "GTC",
            "reduce_only": False,
            "quantity_contracts": "0.5",
        }
    ]
    (body,) = venue.placed_bodies
    assert json.loads(body) == {
        "customer_order_id": "cli-test-1",
        "contract": "1",
        "type": "market",
        "limit_price": "0",
        "time_in_force": "GTC",
        "reduce_only": False,
        "quantity_contracts": "0.5",
        "timestamp": 1_700_000_000_000,
        "recv_window": 30000,
    }


def test_missing_quantity_is_never_estimated(btc_contract):
    venue = FakeVenue()
    lifecycle = _lifecycle(_draft(btc_contract, quantity_contracts=None), venue)

    with pytest.raises(DraftValidationError):
        asyncio.run(lifecycle.estimate())

    assert venue.estimate_calls == []
    assert lifecycle.state is LifecycleState.DRAFT


def test_draft_change_after_estimate_requires_new_estimate(btc_contract):
    venue = FakeVenue()
    lifecycle = _lifecycle(_draft(btc_contract), venue)
    asyncio.run(lifecycle.estimate())

    lifecycle.draft.quantity_contracts = Decimal("5")

    with pytest.raises(StaleEstimateError):
        asyncio.run(lifecycle.confirm(yes))
    assert lifecycle.state is LifecycleState.DRAFT
    assert venue.placed_bodies == []


def test_confirm_before_estimate_is_refused(btc_contract):
    venue = FakeVenue()
    lifecycle = _lifecycle(_draft(btc_contract), venue)

    with pytest.raises(LifecycleStateError):
        asyncio.run(lifecycle.confirm(yes))
    assert lifecycle.state is LifecycleState.DRAFT


def test_inconsistent_state_raises_lifecycle_error(btc_contract):
    venue = FakeVenue()
    asked = []
    lifecycle = _lifecycle(_draft(btc_contract), venue)

    lifecycle._state = LifecycleState.ESTIMATED
    with pytest.raises(LifecycleStateError, match="not been estimated"):
        asyncio.run(lifecycle.confirm(lambda order, estimate: asked.append(order) or True))

    lifecycle._state = LifecycleState.VALIDATED
    with pytest.raises(LifecycleStateError, match="not been validated"):
        asyncio.run(lifecycle.estimate())
    assert asked == []
    assert venue.estimate_calls == []



def test_update_draft_discards_estimate(btc_contract):
    venue = FakeVenue()
    lifecycle = _lifecycle(_draft(btc_contract), venue)
    asyncio.run(lifecycle.estimate())

    lifecycle.update_draft(quantity_contracts=Decimal("1"))

    assert lifecycle.state is LifecycleState.DRAFT
    assert lifecycle.estimate_result is None
    with pytest.raises(LifecycleStateError):
        asyncio.run(lifecycle.confirm(yes))


@pytest.mark.parametrize("answer", [False, None, "yes", 1])
def test_anything_but_true_cancels(btc_contract, answer):
    venue = FakeVenue()
    lifecycle = _lifecycle(_draft(btc_contract), venue)

    result = asyncio.run(lifecycle.run(lambda order, estimate: answer))

    assert result.state is LifecycleState.CANCELLED
    assert venue.placed_bodies == []
    with pytest.raises(LifecycleStateError):
        asyncio.run(lifecycle.submit())


def test_async_confirmer_is_awaited(btc_contract):
    async def confirmer(order, estimate):
        await asyncio.sleep(0)
        return True

    lifecycle = _lifecycle(_draft(btc_contract), FakeVenue())
    result = asyncio.run(lifecycle.run(confirmer))
    assert result.state is LifecycleState.ACCEPTED


def test_estimation_rejection_returns_to_draft(btc_contract):
    venue = FakeVenue(estimates=[{"error": "Insufficient margin"}, ESTIMATE])
    lifecycle = _lifecycle(_draft(btc_contract), venue)

    first = asyncio.run(lifecycle.estimate())
    assert first == EstimationRejected(reason="Insufficient margin")
    assert lifecycle.state is LifecycleState.DRAFT

    lifecycle.update_draft(quantity_contracts=Decimal("0.1"))
    second = asyncio.run(lifecycle.estimate())
    assert isinstance(second, OrderEstimate)
    assert lifecycle.state is LifecycleState.ESTIMATED


def test_cancel_before_submission(btc_contract):
    lifecycle = _lifecycle(_draft(btc_contract), FakeVenue())
    asyncio.run(lifecycle.estimate())

    lifecycle.cancel()

    assert lifecycle.state is LifecycleState.CANCELLED


def test_cancel_after_submission_is_refused(btc_contract):
    lifecycle = _lifecycle(_draft(btc_contract), FakeVenue())
    asyncio.run(lifecycle.run(yes))

    with pytest.raises(LifecycleStateError):
        lifecycle.cancel()


def test_venue_rejection_is_reported_verbatim(btc_contract):
    venue = FakeVenue(placements=[{"status": "failed", "code": 4002, "message": "Reduce only violated"}])
    lifecycle = _lifecycle(_draft(btc_contract, reduce_only=True), venue)

    result = asyncio.run(lifecycle.run(yes))

    assert result.state is LifecycleState.REJECTED
    assert result.outcome == SubmissionRejected(
        customer_order_id="cli-test-1", status="failed", code="4002", message="Reduce only violated"
    )


@pytest.mark.parametrize(
    "failure",
    [NetworkError(httpx.ReadTimeout("timed out")), ApiError(503, {"message": "unavailable"})],
)
def test_transport_failure_is_errored_without_retry(btc_contract, failure):
    venue = FakeVenue(placements=[failure])
    lifecycle = _lifecycle(_draft(btc_contract), venue)

    result = asyncio.run(lifecycle.run(yes))

    assert result.state is LifecycleState.ERRORED
    assert isinstance(result.outcome, SubmissionErrored)
    assert result.outcome.cause is failure
    assert len(venue.placed_bodies) == 1
    assert lifecycle.submission.customer_order_id == "cli-test-1"


def test_each_submission_gets_a_fresh_customer_order_id(btc_contract):
    lifecycle = OrderLifecycle(_draft(btc_contract), FakeVenue())
    lifecycle.validate()

    first = lifecycle.build_submission()
    second = lifecycle.build_submission()

    assert first.customer_order_id != second.customer_order_id
    assert first.customer_order_id.startswith("cli-")


def test_signing_failure_leaves_order_confirmed(btc_contract, venue_config):
    client_calls = []

    def estimate_handler(request):
        client_calls.append(request.url.path)
        if request.url.path.endswith("/estimate-order"):
            return httpx.Response(200, json=ESTIMATE)
        raise AssertionError("order endpoint must not be reached")

    async def run():
        async with CvexClient(venue_config, transport=httpx.MockTransport(estimate_handler)) as client:
            lifecycle = _lifecycle(_draft(btc_contract), client)
            await lifecycle.estimate()
            await lifecycle.confirm(yes)
            with pytest.raises(KeyUnavailableError):
                await lifecycle.submit()
            return lifecycle

    lifecycle = asyncio.run(run())

    assert lifecycle.state is LifecycleState.CONFIRMED
    assert lifecycle.submission is None
    assert client_calls == ["/v1/trading/estimate-order"]


def test_signed_body_is_the_transmitted_body(btc_contract, venue_config, private_key):
    captured = []

    def handler(request):
        captured.append(request)
        if request.url.path.endswith("/estimate-order"):
            return httpx.Response(200, json=ESTIMATE)
        return httpx.Response(200, json={"status": "success", "transaction_hash": "0x1"})

    async def run():
        signer = RequestSigner(private_key)
        async with CvexClient(venue_config, signer=signer, transport=httpx.MockTransport(handler)) as client:
            lifecycle = _lifecycle(_draft(btc_contract, side="sell", order_type="limit", limit_price=Decimal("81000")), client)
            return await lifecycle.run(yes)

    result = asyncio.run(run())

    assert result.state is LifecycleState.ACCEPTED
    order_request = captured[-1]
    body = order_request.content.decode("utf-8")
    assert json.loads(body)["quantity_contracts"] == "-0.5"
    assert json.loads(body)["limit_price"] == "81000"
    assert verify(
        order_request.headers["X-API-KEY"],
        order_request.headers["X-Signature"],
        "POST",
        str(order_request.url),
        body,
    )


def test_estimate_all_runs_independent_lifecycles(btc_contract):
    good = _lifecycle(_draft(btc_contract), FakeVenue())
    rejected = _lifecycle(_draft(btc_contract), FakeVenue(estimates=[{"error": "closed"}]))
    invalid = _lifecycle(_draft(btc_contract, side=None), FakeVenue())

    results = asyncio.run(estimate_all([good, rejected, invalid]))

    assert isinstance(results[0], OrderEstimate)
    assert results[1] == EstimationRejected(reason="closed")
    assert isinstance(results[2], DraftValidationError)
    assert good.state is LifecycleState.ESTIMATED


def test_describe_estimate(btc_contract):
    lifecycle = _lifecycle(_draft(btc_contract), FakeVenue())
    estimate = asyncio.run(lifecycle.estimate())

    text = describe_estimate(lifecycle.validated, estimate)

    assert "BUY MARKET 0.5 contracts" in text
    assert "BTC-PERP (ID: 1)" in text
    assert "Trading Fee:" in text and "2.5" in text
    rows = dict(line.split(":", 1) for line in text.splitlines())
    assert rows["Est. Liquidation Price"].strip() == "N/A"
