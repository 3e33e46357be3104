"""Chain readers: look up the outcome of transactions sent to a contract."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import httpx

from storefront.core.exceptions import InternalServerError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainTransaction:
    """Outcome of one transaction as reported by the chain."""

    hash: str
    sender_address: str
    amount_paid: float
    error: str
    success: bool
    token_address: str | None
    timestamp: datetime
    gas: int | None  # None when the reader did not report it
    gas_value: str | None


class ChainReaderError(InternalServerError):
    pass


class ChainReader(ABC):
    @abstractmethod
    async def get_transactions(
        self, contract_address: str, hashes: list[str]
    ) -> list[ChainTransaction]:
        ...


_TRANSACTIONS_QUERY = """
query Transactions($network: EthereumNetwork, $smart_contract_address: String, $time_after: ISO8601DateTime, $transactions: [String!]) {
  ethereum(network: $network) {
    transactions(
      txHash: {in: $transactions}
      time: {after: $time_after}
      txTo: {is: $smart_contract_address}
    ) {
      error
      success
      sender { address }
      amount
      currency { address tokenId }
      gas
      gasValue
      hash
      block { timestamp { iso8601 } }
    }
  }
}
"""


class BitQueryClient(ChainReader):
    """Reads transactions from the BitQuery GraphQL API."""

    def __init__(
        self,
        network: str,
        *,
        url: str,
        api_key: str,
        lookback_hours: int = 24,
        timeout: float = 30.0,
    ):
        self.network = network
        self.url = url
        self.api_key = api_key
        self.lookback_hours = lookback_hours
        self.timeout = timeout

    async def get_transactions(
        self, contract_address: str, hashes: list[str]
    ) -> list[ChainTransaction]:
        if not hashes:
            return []

        payload = await self._fetch(contract_address, hashes)
        try:
            rows = payload["data"]["ethereum"]["transactions"] or []
        except (KeyError, TypeError) as exc:
            raise ChainReaderError(f"Unexpected BitQuery response: {payload!r}") from exc

        return [self._to_transaction(row) for row in rows]

    async def _fetch(self, contract_address: str, hashes: list[str]) -> dict:
        variables = {
            "network": self.network,
            "smart_contract_address": contract_address,
            "transactions": hashes,
            "time_after": self._time_after(),
        }
        body = {"query": _TRANSACTIONS_QUERY, "variables": json.dumps(variables)}
        headers = {"Content-Type": "application/json", "X-API-KEY": self.api_key}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(self.url, json=body, headers=headers)
                resp.raise_for_status()
                return resp.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "BitQuery returned HTTP %s for %d hashes on %s",
                exc.response.status_code,
                len(hashes),
                self.network,
            )
            raise ChainReaderError(f"Unable to get transactions: HTTP {exc.response.status_code}") from exc
        except httpx.RequestError as exc:
            logger.error("BitQuery request failed on %s: %s", self.network, exc)
            raise ChainReaderError(f"Unable to get transactions: {exc}") from exc

    def _time_after(self) -> str:
        return (datetime.now(timezone.utc) - timedelta(hours=self.lookback_hours)).isoformat()

    @staticmethod
    def _to_transaction(row: dict) -> ChainTransaction:
        currency_address = (row.get("currency") or {}).get("address")
        return ChainTransaction(
            hash=row["hash"],
            sender_address=row["sender"]["address"],
            amount_paid=row.get("amount") or 0,
            error=row.get("error") or "",
            success=bool(row["success"]),
            # BitQuery reports the native coin as "-"
            token_address=None if currency_address in (None, "-") else currency_address,
            timestamp=datetime.fromisoformat(
                row["block"]["timestamp"]["iso8601"].replace("Z", "+00:00")
            ),
            gas=None if row.get("gas") is None else int(row["gas"]),
            gas_value=(
                None if row.get("gasValue") is None
                else format(Decimal(str(row["gasValue"])), "f")
            ),
        )
