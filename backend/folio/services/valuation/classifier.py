# backend/folio/services/valuation/classifier.py
"""
Ledger entry classification.

Maps each EntryReason to the effect it has on a position: whether it adds
or removes quantity, and whether it moves the cost basis. The table must
cover every EntryReason member; a reason added to the enum without a row
here fails at import time instead of being silently defaulted.
"""

from dataclasses import dataclass

from folio.models import EntryReason, FlowDirection
from folio.services.exceptions import UnknownReasonError


@dataclass(frozen=True)
class EntryEffect:
    direction: FlowDirection
    affects_cost_basis: bool

    @property
    def is_inflow(self) -> bool:
        return self.direction == FlowDirection.INFLOW


_EFFECTS: dict[EntryReason, EntryEffect] = {
    EntryReason.PURCHASE: EntryEffect(FlowDirection.INFLOW, affects_cost_basis=True),
    EntryReason.DEPOSIT: EntryEffect(FlowDirection.INFLOW, affects_cost_basis=False),
    EntryReason.TRANSFER_IN: EntryEffect(FlowDirection.INFLOW, affects_cost_basis=False),
    EntryReason.DIVIDEND: EntryEffect(FlowDirection.INFLOW, affects_cost_basis=False),
    EntryReason.SALE: EntryEffect(FlowDirection.OUTFLOW, affects_cost_basis=True),
    EntryReason.WITHDRAWAL: EntryEffect(FlowDirection.OUTFLOW, affects_cost_basis=False),
    EntryReason.TRANSFER_OUT: EntryEffect(FlowDirection.OUTFLOW, affects_cost_basis=False),
}

_unclassified = set(EntryReason) - set(_EFFECTS)
if _unclassified:
    raise RuntimeError(
        f"Entry reasons without a classification: {sorted(r.value for r in _unclassified)}"
    )


def classify(reason: EntryReason | str) -> EntryEffect:
    """
    Return the effect of an entry reason.

    Accepts the enum or its string value (as stored or sent over the wire).

    Raises:
        UnknownReasonError: If reason is not an EntryReason
    """
    try:
        return _EFFECTS[EntryReason(reason)]
    except (ValueError, KeyError):
        raise UnknownReasonError(reason) from None


def direction_of(reason: EntryReason | str) -> FlowDirection:
    return classify(reason).direction
