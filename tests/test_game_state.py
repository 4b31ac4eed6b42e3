import pytest

from core.exceptions import InvalidStateTransition
from core.game_state import Account, GameState, RoundState, Wager
from core.state_machine import RoundStateMachine
from models import RevealTrigger, RoundStatus, utcnow


def test_new_round_has_a_zero_for_every_number():
    round_state = RoundState.open(1, utcnow(), range(1, 11))

    assert round_state.totals == {n: 0 for n in range(1, 11)}
    assert round_state.status == RoundStatus.OPEN
    assert round_state.revealed_at is None


def test_round_snapshot_is_read_only_copy():
    round_state = RoundState.open(1, utcnow(), range(1, 4))
    view = round_state.snapshot()

    round_state.add_stake(2, 50)

    assert view.totals[2] == 0
    with pytest.raises(TypeError):
        view.totals[2] = 10


def test_chart_evicts_oldest_first():
    state = GameState()
    for number in [1, 2, 3, 4, 5]:
        state.record_winner(number, capacity=3)

    assert state.chart == [3, 4, 5]


def test_wagers_in_round():
    now = utcnow()
    account = Account("alice", wagers=[
        Wager(1, 2, 10, now),
        Wager(3, 4, 10, now),
        Wager(3, 5, 20, now),
        Wager(4, 1, 10, now),
    ])

    assert [w.number for w in account.wagers_in_round(3)] == [4, 5]
    assert account.wagers_in_round(2) == []


def test_round_goes_open_revealing_closed():
    round_state = RoundState.open(1, utcnow(), range(1, 11))

    RoundStateMachine.transition(round_state, RoundStatus.REVEALING)
    RoundStateMachine.close(round_state, 6, utcnow(), RevealTrigger.AUTO)

    assert round_state.status == RoundStatus.CLOSED
    assert round_state.winning_number == 6
    assert round_state.trigger == RevealTrigger.AUTO


def test_round_cannot_skip_reveal_or_reopen():
    round_state = RoundState.open(1, utcnow(), range(1, 11))

    with pytest.raises(InvalidStateTransition):
        RoundStateMachine.close(round_state, 6, utcnow(), RevealTrigger.AUTO)

    RoundStateMachine.transition(round_state, RoundStatus.REVEALING)
    RoundStateMachine.close(round_state, 6, utcnow(), RevealTrigger.AUTO)

    with pytest.raises(InvalidStateTransition):
        RoundStateMachine.transition(round_state, RoundStatus.OPEN)
    with pytest.raises(InvalidStateTransition):
        RoundStateMachine.close(round_state, 2, utcnow(), RevealTrigger.ADMIN_FORCE)
    assert round_state.winning_number == 6


def test_close_rejects_number_outside_round():
    round_state = RoundState.open(1, utcnow(), range(1, 11))
    RoundStateMachine.transition(round_state, RoundStatus.REVEALING)

    with pytest.raises(InvalidStateTransition):
        RoundStateMachine.close(round_state, 11, utcnow(), RevealTrigger.AUTO)


def test_void_is_final_and_has_no_winner():
    round_state = RoundState.open(1, utcnow(), range(1, 11))
    RoundStateMachine.transition(round_state, RoundStatus.REVEALING)

    RoundStateMachine.void(round_state, utcnow(), RevealTrigger.ADMIN_FORCE)

    assert round_state.status == RoundStatus.VOIDED
    assert round_state.winning_number is None
    with pytest.raises(InvalidStateTransition):
        RoundStateMachine.close(round_state, 6, utcnow(), RevealTrigger.AUTO)
    with pytest.raises(InvalidStateTransition):
        RoundStateMachine.void(round_state, utcnow())


def test_closed_round_rejects_stakes():
    round_state = RoundState.open(1, utcnow(), range(1, 11))
    RoundStateMachine.transition(round_state, RoundStatus.REVEALING)

    with pytest.raises(InvalidStateTransition):
        round_state.add_stake(3, 10)
    assert round_state.totals[3] == 0
    assert round_state.accepts(3) is False


def test_state_snapshot_shares_history_and_copies_mutable_parts():
    now = utcnow()
    closed = RoundState.open(1, now, range(1, 11))
    closed.status = RoundStatus.CLOSED
    closed.winning_number = 4
    current = RoundState.open(2, now, range(1, 11))
    wager = Wager(2, 5, 10, now)
    state = GameState(
        accounts={"alice": Account("alice", 90, [wager])},
        rounds=[closed],
        chart=[4],
        next_round_id=3,
        current_round=current,
    )

    copied = state.snapshot()
    state.accounts["alice"].balance = 0
    state.accounts["alice"].wagers.append(Wager(2, 6, 1, now))
    current.add_stake(5, 10)
    state.chart.append(7)
    state.rounds.append(current)

    assert copied.rounds[0] is closed
    assert copied.accounts["alice"].wagers == [wager]
    assert copied.accounts["alice"].wagers[0] is wager
    assert copied.accounts["alice"].balance == 90
    assert copied.current_round.totals[5] == 0
    assert copied.chart == [4]
    assert len(copied.rounds) == 1
