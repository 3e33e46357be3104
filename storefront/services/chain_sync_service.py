"""Building blocks shared by the three reconcilers.

A reconciler run loads unresolved transactions, snapshots them into plain
candidates, drops malformed hashes, groups the rest by contract address and
asks the chain reader about one group at a time. Each chain result is
written back through ``record_failure`` or ``commit_confirmation``. Both
are compare-and-set updates, so a transaction resolved by an overlapping
run is skipped instead of resolved twice.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Generic, Iterable, Sequence, TypeVar

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Update

from storefront.blockchain.transactions import ChainReader, ChainTransaction
from storefront.core.validation import TRANSACTION_HASH_LENGTH
from storefront.database import atomic

logger = logging.getLogger(__name__)

_scope_locks: dict[tuple[str, str], asyncio.Lock] = {}


@dataclass(frozen=True)
class Candidate:
    """An unresolved transaction, detached from the session."""

    transaction_id: str
    hash: str
    owner_id: str
    contract_address: str


CandidateT = TypeVar("CandidateT", bound=Candidate)


@dataclass
class Match(Generic[CandidateT]):
    candidate: CandidateT
    chain_tx: ChainTransaction


def scope_lock(kind: str, scope: object) -> asyncio.Lock:
    """Lock serialising runs of one reconciler over one scope in this process."""
    key = (kind, str(scope))
    lock = _scope_locks.get(key)
    if lock is None:
        lock = _scope_locks[key] = asyncio.Lock()
    return lock


def reset_scope_locks() -> None:
    _scope_locks.clear()


def well_formed(candidates: Iterable[CandidateT]) -> list[CandidateT]:
    """Drop candidates whose hash cannot be a 32-byte transaction id."""
    kept: list[CandidateT] = []
    for candidate in candidates:
        if len(candidate.hash) != TRANSACTION_HASH_LENGTH:
            logger.warning(
                "Skipping transaction %s: malformed hash %r",
                candidate.transaction_id,
                candidate.hash,
            )
            continue
        kept.append(candidate)
    return kept


def group_by_contract(candidates: Iterable[CandidateT]) -> dict[str, list[CandidateT]]:
    """Group by contract address, keeping the order addresses were first seen."""
    groups: dict[str, list[CandidateT]] = {}
    for candidate in candidates:
        groups.setdefault(candidate.contract_address, []).append(candidate)
    return groups


async def fetch_matches(
    reader: ChainReader,
    contract_address: str,
    candidates: Sequence[CandidateT],
) -> list[Match[CandidateT]]:
    """Query one contract group and pair each chain result with its candidate.

    Results for hashes that are not in ``candidates`` are ignored.
    """
    by_hash = {candidate.hash.lower(): candidate for candidate in candidates}
    chain_txs = await reader.get_transactions(contract_address, list(by_hash))

    matches: list[Match[CandidateT]] = []
    for chain_tx in chain_txs:
        candidate = by_hash.get(chain_tx.hash.lower())
        if candidate is None:
            logger.warning(
                "Ignoring unknown transaction %s returned for contract %s",
                chain_tx.hash,
                contract_address,
            )
            continue
        matches.append(Match(candidate=candidate, chain_tx=chain_tx))
    return matches


class _AlreadyResolved(Exception):
    pass


def _unresolved(transaction_model, transaction_id: str) -> Update:
    return update(transaction_model).where(
        transaction_model.id == transaction_id,
        transaction_model.confirmed_at.is_(None),
        transaction_model.failed_at.is_(None),
    )


async def record_failure(
    db: AsyncSession,
    transaction_model,
    candidate: Candidate,
    chain_tx: ChainTransaction,
) -> bool:
    """Store an on-chain failure. The owner is left as it is."""
    async with atomic(db):
        result = await db.execute(
            _unresolved(transaction_model, candidate.transaction_id).values(
                sender_address=chain_tx.sender_address,
                gas=chain_tx.gas,
                transaction_fee=chain_tx.gas_value,
                failed_at=chain_tx.timestamp,
                blockchain_error=chain_tx.error,
            )
        )

    if result.rowcount != 1:
        logger.warning("Transaction %s was already resolved; failure not recorded", chain_tx.hash)
        return False

    logger.warning(
        "Transaction %s failed on chain for %s: %s",
        chain_tx.hash,
        candidate.owner_id,
        chain_tx.error or "no error message",
    )
    return True


async def commit_confirmation(
    db: AsyncSession,
    transaction_model,
    candidate: Candidate,
    chain_tx: ChainTransaction,
    owner_update: Update,
    extra_rows: Sequence[object] = (),
) -> bool:
    """Confirm the transaction, its owner and any derived rows as one unit.

    ``owner_update`` must only match an owner that is still open. If either
    update touches no row the whole unit is rolled back and False returned.
    """
    try:
        async with atomic(db):
            tx_result = await db.execute(
                _unresolved(transaction_model, candidate.transaction_id).values(
                    sender_address=chain_tx.sender_address,
                    gas=chain_tx.gas,
                    transaction_fee=chain_tx.gas_value,
                    confirmed_at=chain_tx.timestamp,
                )
            )
            if tx_result.rowcount != 1:
                raise _AlreadyResolved

            owner_result = await db.execute(owner_update)
            if owner_result.rowcount != 1:
                raise _AlreadyResolved

            db.add_all(extra_rows)
    except _AlreadyResolved:
        logger.warning(
            "Transaction %s or its owner %s was resolved concurrently; skipped",
            chain_tx.hash,
            candidate.owner_id,
        )
        return False

    logger.info("Confirmed transaction %s for %s", chain_tx.hash, candidate.owner_id)
    return True


@dataclass
class ReconcileSummary:
    candidates: int = 0
    skipped: int = 0
    groups: int = 0
    confirmed: int = 0
    failed: int = 0
