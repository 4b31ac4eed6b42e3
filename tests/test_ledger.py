import pytest

from core.exceptions import (
    AccountAlreadyExists,
    AccountNotFound,
    InsufficientBalance,
    InvalidInput,
)
from core.game_state import Wager
from core.ledger import Ledger
from models import utcnow


@pytest.fixture
def ledger():
    ledger = Ledger({})
    ledger.open_account("alice", 100)
    return ledger


def test_open_account_rejects_duplicates_and_bad_input(ledger):
    with pytest.raises(AccountAlreadyExists):
        ledger.open_account("alice")
    with pytest.raises(InvalidInput):
        ledger.open_account("")
    with pytest.raises(InvalidInput):
        ledger.open_account("bob", -1)


def test_debit_and_credit_adjust_balance(ledger):
    assert ledger.debit("alice", 30) == 70
    assert ledger.credit("alice", 240) == 310
    assert ledger.get("alice").balance == 310


def test_debit_beyond_balance_changes_nothing(ledger):
    with pytest.raises(InsufficientBalance) as exc_info:
        ledger.debit("alice", 101)

    assert exc_info.value.balance == 100
    assert ledger.get("alice").balance == 100


def test_debit_for_wager_records_history_only_on_success(ledger):
    ok = Wager(1, 4, 60, utcnow())
    too_big = Wager(1, 5, 60, utcnow())

    assert ledger.debit_for_wager("alice", ok) == 40
    with pytest.raises(InsufficientBalance):
        ledger.debit_for_wager("alice", too_big)

    assert ledger.get("alice").wagers == [ok]


def test_credit_winners_skips_removed_accounts(ledger):
    ledger.open_account("bob")
    ledger.close_account("bob")

    credited = ledger.credit_winners({"alice": 80, "bob": 16})

    assert credited == {"alice": 80}
    assert ledger.get("alice").balance == 180


def test_unknown_account(ledger):
    with pytest.raises(AccountNotFound):
        ledger.get("nobody")
    with pytest.raises(AccountNotFound):
        ledger.credit("nobody", 1)
