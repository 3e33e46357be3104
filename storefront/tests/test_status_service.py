"""Status derivation for marketplaces, orders and payouts.

Owners are plain namespaces here; derivation only reads timestamps and the
transaction list, so no database is needed.
"""

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from storefront.core.exceptions import (
    CancelledOwnerMustNotHaveConfirmedTransactions,
    CancelledOwnerMustNotHavePendingTransactions,
    ConfirmedOwnerDoesNotHaveConfirmedTransaction,
    DraftOwnerMustNotHaveTransactions,
    ErrorKind,
    OwnerHasConflictingTerminalStates,
    PendingOwnerHasSeveralUnresolvedTransactions,
    PendingOwnerMustHaveTransactions,
    PendingOwnerMustNotHaveConfirmedTransactions,
    RefundedOwnerDoesNotHaveConfirmedTransaction,
)
from storefront.services.status_service import (
    OwnerStatus,
    TransactionStatus,
    derive_marketplace_status,
    derive_order_status,
    derive_payout_status,
    derive_transaction_status,
)

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _tx(state: str = "unresolved"):
    return SimpleNamespace(
        confirmed_at=NOW if state == "confirmed" else None,
        failed_at=NOW if state == "failed" else None,
    )


def _marketplace(pending=False, confirmed=False, txs=()):
    return SimpleNamespace(
        pending_at=NOW if pending else None,
        confirmed_at=NOW if confirmed else None,
        transactions=[_tx(s) for s in txs],
    )


def _order(pending=False, confirmed=False, cancelled=False, refunded=False, txs=()):
    return SimpleNamespace(
        pending_at=NOW if pending else None,
        confirmed_at=NOW if confirmed else None,
        cancelled_at=NOW if cancelled else None,
        refunded_at=NOW if refunded else None,
        transactions=[_tx(s) for s in txs],
    )


def _payout(pending=False, confirmed=False, cancelled=False, txs=()):
    return SimpleNamespace(
        pending_at=NOW if pending else None,
        confirmed_at=NOW if confirmed else None,
        cancelled_at=NOW if cancelled else None,
        transactions=[_tx(s) for s in txs],
    )


# ---------------------------------------------------------------------------
# Marketplace
# ---------------------------------------------------------------------------

def test_marketplace_without_timestamps_or_transactions_is_draft():
    assert derive_marketplace_status(_marketplace()) is OwnerStatus.DRAFT


def test_marketplace_with_one_unresolved_transaction_awaits_confirmation():
    marketplace = _marketplace(pending=True, txs=["unresolved"])
    assert derive_marketplace_status(marketplace) is OwnerStatus.AWAITING_CONFIRMATION


def test_marketplace_with_only_failed_transactions_is_pending():
    marketplace = _marketplace(pending=True, txs=["failed", "failed"])
    assert derive_marketplace_status(marketplace) is OwnerStatus.PENDING


def test_marketplace_retry_after_failure_awaits_confirmation():
    marketplace = _marketplace(pending=True, txs=["failed", "unresolved"])
    assert derive_marketplace_status(marketplace) is OwnerStatus.AWAITING_CONFIRMATION


def test_confirmed_marketplace_with_one_confirmed_transaction():
    marketplace = _marketplace(pending=True, confirmed=True, txs=["failed", "confirmed"])
    assert derive_marketplace_status(marketplace) is OwnerStatus.CONFIRMED


def test_confirmed_marketplace_without_confirmed_transaction_is_invalid():
    marketplace = _marketplace(pending=True, confirmed=True, txs=["failed"])
    with pytest.raises(ConfirmedOwnerDoesNotHaveConfirmedTransaction) as exc_info:
        derive_marketplace_status(marketplace)
    assert exc_info.value.kind is ErrorKind.INTERNAL
    assert "marketplace" in exc_info.value.message


def test_confirmed_marketplace_with_two_confirmed_transactions_is_invalid():
    marketplace = _marketplace(pending=True, confirmed=True, txs=["confirmed", "confirmed"])
    with pytest.raises(ConfirmedOwnerDoesNotHaveConfirmedTransaction):
        derive_marketplace_status(marketplace)


def test_draft_marketplace_with_transactions_is_invalid():
    with pytest.raises(DraftOwnerMustNotHaveTransactions):
        derive_marketplace_status(_marketplace(txs=["unresolved"]))


def test_pending_marketplace_without_transactions_is_invalid():
    with pytest.raises(PendingOwnerMustHaveTransactions):
        derive_marketplace_status(_marketplace(pending=True))


def test_pending_marketplace_with_confirmed_transaction_is_invalid():
    with pytest.raises(PendingOwnerMustNotHaveConfirmedTransactions):
        derive_marketplace_status(_marketplace(pending=True, txs=["confirmed"]))


def test_pending_marketplace_with_two_unresolved_transactions_is_invalid():
    with pytest.raises(PendingOwnerHasSeveralUnresolvedTransactions):
        derive_marketplace_status(_marketplace(pending=True, txs=["unresolved", "unresolved"]))


# ---------------------------------------------------------------------------
# Order
# ---------------------------------------------------------------------------

def test_order_lifecycle_statuses():
    assert derive_order_status(_order()) is OwnerStatus.DRAFT
    assert derive_order_status(_order(pending=True, txs=["unresolved"])) is OwnerStatus.AWAITING_CONFIRMATION
    assert derive_order_status(_order(pending=True, txs=["failed"])) is OwnerStatus.PENDING
    assert derive_order_status(_order(pending=True, confirmed=True, txs=["confirmed"])) is OwnerStatus.CONFIRMED


def test_cancelled_draft_order_is_cancelled():
    assert derive_order_status(_order(cancelled=True)) is OwnerStatus.CANCELLED


def test_cancelled_order_after_failed_payment_is_cancelled():
    order = _order(pending=True, cancelled=True, txs=["failed"])
    assert derive_order_status(order) is OwnerStatus.CANCELLED


def test_cancelled_order_with_confirmed_payment_is_invalid():
    order = _order(pending=True, cancelled=True, txs=["confirmed"])
    with pytest.raises(CancelledOwnerMustNotHaveConfirmedTransactions):
        derive_order_status(order)


def test_cancelled_order_with_unresolved_payment_is_invalid():
    order = _order(pending=True, cancelled=True, txs=["unresolved"])
    with pytest.raises(CancelledOwnerMustNotHavePendingTransactions):
        derive_order_status(order)


def test_refunded_order_has_refunded_status():
    order = _order(pending=True, refunded=True, txs=["confirmed"])
    assert derive_order_status(order) is OwnerStatus.REFUNDED


def test_refunded_order_without_confirmed_payment_is_invalid():
    with pytest.raises(RefundedOwnerDoesNotHaveConfirmedTransaction):
        derive_order_status(_order(pending=True, refunded=True, txs=["failed"]))


def test_order_with_two_terminal_timestamps_is_invalid():
    order = _order(pending=True, confirmed=True, cancelled=True, txs=["confirmed"])
    with pytest.raises(OwnerHasConflictingTerminalStates):
        derive_order_status(order)


# ---------------------------------------------------------------------------
# Payout
# ---------------------------------------------------------------------------

def test_payout_statuses():
    assert derive_payout_status(_payout()) is OwnerStatus.DRAFT
    assert derive_payout_status(_payout(pending=True, txs=["unresolved"])) is OwnerStatus.AWAITING_CONFIRMATION
    assert derive_payout_status(_payout(pending=True, confirmed=True, txs=["confirmed"])) is OwnerStatus.CONFIRMED
    assert derive_payout_status(_payout(cancelled=True)) is OwnerStatus.CANCELLED


def test_payout_error_names_the_owner():
    with pytest.raises(PendingOwnerMustHaveTransactions) as exc_info:
        derive_payout_status(_payout(pending=True))
    assert "payout" in exc_info.value.message


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

def test_transaction_status():
    assert derive_transaction_status(_tx("confirmed")) is TransactionStatus.CONFIRMED
    assert derive_transaction_status(_tx("failed")) is TransactionStatus.FAILED
    assert derive_transaction_status(_tx()) is TransactionStatus.AWAITING_CONFIRMATION
