"""Columns shared by every on-chain transaction table.

A transaction is *unresolved* while both ``confirmed_at`` and ``failed_at``
are NULL. At most one transaction per owner ever gets ``confirmed_at``.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Text


def utcnow():
    return datetime.now(timezone.utc)


class BlockchainTransactionMixin:
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    hash = Column(String(255), unique=True, nullable=False)  # 0x + 64 hex when well-formed
    sender_address = Column(String(42), nullable=True)
    gas = Column(Integer, nullable=True)
    transaction_fee = Column(String(100), nullable=True)
    blockchain_error = Column(Text, nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
