"""Lifecycle status of seller marketplaces, product orders and seller payouts.

Status is never stored. It is derived from the owner's timestamps and its
transaction history, and every derivation re-checks the invariants tying
the two together. A breach raises a ``StatusInvariantError`` instead of
guessing.

Precedence, terminal states first: refunded, cancelled, confirmed,
pending / awaiting_confirmation, draft.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from storefront.core.exceptions import (
    CancelledOwnerMustNotHaveConfirmedTransactions,
    CancelledOwnerMustNotHavePendingTransactions,
    ConfirmedOwnerDoesNotHaveConfirmedTransaction,
    DraftOwnerMustNotHaveTransactions,
    OwnerHasConflictingTerminalStates,
    PendingOwnerHasSeveralUnresolvedTransactions,
    PendingOwnerMustHaveTransactions,
    PendingOwnerMustNotHaveConfirmedTransactions,
    RefundedOwnerDoesNotHaveConfirmedTransaction,
)

MARKETPLACE = "marketplace"
ORDER = "order"
PAYOUT = "payout"


class OwnerStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class TransactionStatus(str, enum.Enum):
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class TransactionLike(Protocol):
    confirmed_at: datetime | None
    failed_at: datetime | None


@dataclass(frozen=True)
class OwnerState:
    """The inputs of a derivation, detached from the ORM."""

    pending_at: datetime | None
    confirmed_at: datetime | None
    transactions: tuple[TransactionLike, ...]
    cancelled_at: datetime | None = None
    refunded_at: datetime | None = None


def derive_status(owner: str, state: OwnerState) -> OwnerStatus:
    transactions = state.transactions
    confirmed = [tx for tx in transactions if tx.confirmed_at is not None]
    unresolved = [tx for tx in transactions if tx.confirmed_at is None and tx.failed_at is None]

    terminal = [ts for ts in (state.confirmed_at, state.cancelled_at, state.refunded_at) if ts]
    if len(terminal) > 1:
        raise OwnerHasConflictingTerminalStates(owner)

    if state.refunded_at:
        if len(confirmed) != 1:
            raise RefundedOwnerDoesNotHaveConfirmedTransaction(owner)
        return OwnerStatus.REFUNDED

    if state.cancelled_at:
        if not transactions:
            return OwnerStatus.CANCELLED
        if confirmed:
            raise CancelledOwnerMustNotHaveConfirmedTransactions(owner)
        if unresolved:
            raise CancelledOwnerMustNotHavePendingTransactions(owner)
        return OwnerStatus.CANCELLED

    if state.confirmed_at:
        if len(confirmed) != 1:
            raise ConfirmedOwnerDoesNotHaveConfirmedTransaction(owner)
        return OwnerStatus.CONFIRMED

    if state.pending_at:
        if not transactions:
            raise PendingOwnerMustHaveTransactions(owner)
        if confirmed:
            raise PendingOwnerMustNotHaveConfirmedTransactions(owner)
        if len(unresolved) > 1:
            raise PendingOwnerHasSeveralUnresolvedTransactions(owner)
        if unresolved:
            return OwnerStatus.AWAITING_CONFIRMATION
        return OwnerStatus.PENDING

    if transactions:
        raise DraftOwnerMustNotHaveTransactions(owner)
    return OwnerStatus.DRAFT


def derive_marketplace_status(marketplace) -> OwnerStatus:
    """Marketplaces are never cancelled; activation only moves forward."""
    return derive_status(
        MARKETPLACE,
        OwnerState(
            pending_at=marketplace.pending_at,
            confirmed_at=marketplace.confirmed_at,
            transactions=tuple(marketplace.transactions),
        ),
    )


def derive_order_status(order) -> OwnerStatus:
    return derive_status(
        ORDER,
        OwnerState(
            pending_at=order.pending_at,
            confirmed_at=order.confirmed_at,
            cancelled_at=order.cancelled_at,
            refunded_at=order.refunded_at,
            transactions=tuple(order.transactions),
        ),
    )


def derive_payout_status(payout) -> OwnerStatus:
    return derive_status(
        PAYOUT,
        OwnerState(
            pending_at=payout.pending_at,
            confirmed_at=payout.confirmed_at,
            cancelled_at=payout.cancelled_at,
            transactions=tuple(payout.transactions),
        ),
    )


def derive_transaction_status(transaction: TransactionLike) -> TransactionStatus:
    if transaction.confirmed_at is not None:
        return TransactionStatus.CONFIRMED
    if transaction.failed_at is not None:
        return TransactionStatus.FAILED
    return TransactionStatus.AWAITING_CONFIRMATION
