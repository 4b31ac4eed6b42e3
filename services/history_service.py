"""
Account history service.

Builds the per-account wager log so clients can render outcomes directly
from the server instead of recomputing them.
"""
from typing import Any, Dict, List, Mapping

from models import RoundStatus
from core.game_state import Account, RoundState


def get_account_wager_history(
    account: Account,
    rounds: List[RoundState],
    payout_multiplier: int,
) -> List[Dict[str, Any]]:
    """
    Return the account's wagers in the order they were placed.

    Each entry carries the round outcome when the round has been revealed:
    the winning number and the payout of that single wager (0 when it lost).
    Wagers of the round still open have "winning_number" and "payout" set
    to None. Wagers of a voided round are marked "refunded" with a payout
    of 0; the stake itself was returned to the balance.
    """
    revealed: Mapping[int, int] = {
        r.round_id: r.winning_number for r in rounds if r.winning_number is not None
    }
    voided = {r.round_id for r in rounds if r.status == RoundStatus.VOIDED}

    history: List[Dict[str, Any]] = []
    for wager in account.wagers:
        entry: Dict[str, Any] = {
            "round_id": wager.round_id,
            "number": wager.number,
            "amount": wager.amount,
            "placed_at": wager.placed_at,
            "winning_number": None,
            "payout": None,
            "refunded": False,
        }

        winning_number = revealed.get(wager.round_id)
        if winning_number is not None:
            entry["winning_number"] = winning_number
            entry["payout"] = (
                wager.amount * payout_multiplier if wager.number == winning_number else 0
            )
        elif wager.round_id in voided:
            entry["payout"] = 0
            entry["refunded"] = True

        history.append(entry)

    return history
