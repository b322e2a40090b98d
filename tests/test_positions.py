"""Position ledger lifecycle, exposure and query tests."""

import itertools

import pytest
from pydantic import ValidationError

from predengine.errors import InvalidInputError, PositionNotFoundError, StateError
from predengine.models import PositionStatus, Side
from predengine.positions.ledger import PositionLedger


@pytest.fixture
def ledger(clock):
    counter = itertools.count(1)
    return PositionLedger(id_factory=lambda: f"pos-{next(counter)}", clock=clock)


def test_open_creates_pending_position(ledger, clock):
    p = ledger.open("m1", "yes", 65.0, odds=0.5)
    assert p.id == "pos-1"
    assert p.status is PositionStatus.PENDING
    assert p.side is Side.YES
    assert p.avg_price == pytest.approx(1 / 1.5)
    assert p.shares == pytest.approx(65.0 * 1.5)
    assert p.payout is None
    assert p.created_at == clock.now
    assert ledger.get("pos-1") == p


def test_open_generates_unique_ids(ledger):
    ids = {ledger.open("m1", Side.NO, 1.0, odds=1.0).id for _ in range(20)}
    assert len(ids) == 20


def test_open_validates_before_mutation(ledger):
    for amount in (0, -1):
        with pytest.raises(InvalidInputError):
            ledger.open("m1", "yes", amount, odds=1.0)
    with pytest.raises(InvalidInputError):
        ledger.open("m1", "maybe", 1.0, odds=1.0)
    with pytest.raises(InvalidInputError):
        ledger.open("m1", "yes", 1.0, odds=-2)
    assert len(ledger) == 0


def test_duplicate_id_rejected():
    ledger = PositionLedger(id_factory=lambda: "same")
    ledger.open("m1", "yes", 1.0, odds=1.0)
    with pytest.raises(StateError):
        ledger.open("m1", "no", 2.0, odds=1.0)
    assert len(ledger) == 1
    assert ledger.get("same").side is Side.YES


def test_cancel_only_from_pending(ledger):
    pending = ledger.open("m1", "yes", 10.0, odds=1.0)
    assert ledger.cancel(pending.id).status is PositionStatus.CANCELLED

    matched = ledger.open("m1", "yes", 10.0, odds=1.0)
    ledger.match(matched.id)
    with pytest.raises(StateError):
        ledger.cancel(matched.id)
    assert ledger.get(matched.id).status is PositionStatus.MATCHED

    settled = ledger.open("m1", "no", 10.0, odds=1.0)
    ledger.settle(settled.id, 20.0)
    with pytest.raises(StateError):
        ledger.cancel(settled.id)
    assert ledger.get(settled.id).status is PositionStatus.SETTLED


def test_settle_from_pending_and_matched(ledger):
    a = ledger.open("m1", "yes", 10.0, odds=1.0)
    b = ledger.open("m1", "yes", 10.0, odds=1.0)
    ledger.match(b.id)
    sa = ledger.settle(a.id, 0.0)
    sb = ledger.settle(b.id, 20.0)
    assert sa.payout == 0.0 and sa.realized_pnl == -10.0
    assert sb.payout == 20.0 and sb.realized_pnl == 10.0
    assert ledger.realized_pnl() == pytest.approx(0.0)


def test_terminal_states_reject_transitions(ledger):
    p = ledger.open("m1", "yes", 10.0, odds=1.0)
    ledger.cancel(p.id)
    for move in (ledger.match, ledger.cancel, lambda pid: ledger.settle(pid, 1.0)):
        with pytest.raises(StateError):
            move(p.id)
    assert ledger.get(p.id).status is PositionStatus.CANCELLED

    q = ledger.open("m1", "yes", 10.0, odds=1.0)
    ledger.settle(q.id, 5.0)
    with pytest.raises(StateError):
        ledger.match(q.id)
    with pytest.raises(StateError):
        ledger.settle(q.id, 6.0)
    assert ledger.get(q.id).payout == 5.0


def test_settle_rejects_negative_payout(ledger):
    p = ledger.open("m1", "yes", 10.0, odds=1.0)
    with pytest.raises(InvalidInputError):
        ledger.settle(p.id, -1.0)
    assert ledger.get(p.id).status is PositionStatus.PENDING


def test_claim_once_after_settlement(ledger):
    p = ledger.open("m1", "yes", 10.0, odds=1.0)
    with pytest.raises(StateError):
        ledger.claim(p.id)
    ledger.settle(p.id, 20.0)
    assert ledger.claim(p.id).claimed
    with pytest.raises(StateError):
        ledger.claim(p.id)


def test_unknown_position(ledger):
    with pytest.raises(PositionNotFoundError):
        ledger.cancel("nope")
    with pytest.raises(KeyError):
        ledger.get("nope")


def test_exposure_counts_only_open_positions(ledger):
    ledger.open("m1", "yes", 10.0, odds=1.0)
    matched = ledger.open("m1", "yes", 5.0, odds=1.0)
    ledger.match(matched.id)
    ledger.open("m1", "no", 7.0, odds=1.0)
    cancelled = ledger.open("m1", "no", 100.0, odds=1.0)
    ledger.cancel(cancelled.id)
    settled = ledger.open("m1", "yes", 50.0, odds=1.0)
    ledger.settle(settled.id, 0.0)
    ledger.open("m2", "yes", 99.0, odds=1.0)

    assert ledger.exposure("m1") == {"yes": 15.0, "no": 7.0}
    assert ledger.exposure("unknown") == {"yes": 0.0, "no": 0.0}


def test_queries(ledger):
    a = ledger.open("m1", "yes", 1.0, odds=1.0)
    b = ledger.open("m2", "no", 1.0, odds=1.0)
    c = ledger.open("m1", "no", 1.0, odds=1.0)
    ledger.settle(b.id, 2.0)
    ledger.cancel(c.id)
    assert [p.id for p in ledger.positions_by_market("m1")] == [a.id, c.id]
    assert [p.id for p in ledger.active()] == [a.id]
    assert [p.id for p in ledger.settled()] == [b.id]
    assert len(ledger.all()) == 3


def test_positions_are_immutable(ledger):
    p = ledger.open("m1", "yes", 1.0, odds=1.0)
    with pytest.raises(ValidationError):
        p.status = PositionStatus.SETTLED
    assert ledger.get(p.id).status is PositionStatus.PENDING
