"""Disbursement ledger for the powtap faucet.

Features:
- Records every completed transfer keyed by transaction hash
- Lookup by hash and listing in submission order
- In-memory fallback for development
"""

import logging
import time
from dataclasses import asdict, dataclass
from decimal import Decimal

logger = logging.getLogger(__name__)

TX_KEY_PREFIX = "powtap:tx:"
TX_INDEX_KEY = "powtap:txs"


@dataclass(frozen=True)
class DisbursementRecord:
    """A completed faucet transfer."""

    tx_id: str
    destination: str
    amount: Decimal
    timestamp: int

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dict."""
        data = asdict(self)
        data["amount"] = str(self.amount)
        return data


class TransactionLedger:
    """Durable record of completed disbursements.

    Uses Redis for persistence in production, with in-memory fallback
    for development/testing.

    Parameters
    ----------
    redis_url : str | None
        Redis connection URL. If None, uses in-memory storage.
    """

    def __init__(self, redis_url: str | None = None):
        self._redis_url = redis_url
        self._redis = None  # Redis instance or None

        # In-memory fallback storage, in insertion order
        self._memory_records: dict[str, DisbursementRecord] = {}

        if redis_url:
            self._init_redis(redis_url)

    def _init_redis(self, redis_url: str) -> None:
        """Initialize Redis connection."""
        try:
            from redis import Redis

            self._redis = Redis.from_url(redis_url, decode_responses=True)
            self._redis.ping()
            logger.info("Redis connected for transaction ledger", extra={"url": redis_url})
        except Exception as e:
            logger.warning(
                "Redis connection failed, using in-memory transaction ledger",
                extra={"error": str(e)},
            )
            self._redis = None

    @property
    def persistent(self) -> bool:
        """Whether records survive a restart."""
        return self._redis is not None

    async def record(self, tx_id: str, destination: str, amount: Decimal) -> DisbursementRecord:
        """Record a completed disbursement.

        Parameters
        ----------
        tx_id : str
            Transaction hash.
        destination : str
            Recipient address.
        amount : Decimal
            Amount sent.

        Returns
        -------
        DisbursementRecord
            The stored record.
        """
        record = DisbursementRecord(
            tx_id=tx_id,
            destination=destination,
            amount=amount,
            timestamp=int(time.time()),
        )
        logger.info("Saving transaction", extra=record.to_dict())

        if self._redis:
            pipe = self._redis.pipeline()
            pipe.hset(
                f"{TX_KEY_PREFIX}{tx_id}",
                mapping={
                    "destination": destination,
                    "amount": str(amount),
                    "timestamp": record.timestamp,
                },
            )
            pipe.zadd(TX_INDEX_KEY, {tx_id: record.timestamp})
            pipe.execute()
        else:
            self._memory_records[tx_id] = record

        return record

    async def get(self, tx_id: str) -> DisbursementRecord | None:
        """Look up a disbursement by transaction hash.

        Parameters
        ----------
        tx_id : str
            Transaction hash.

        Returns
        -------
        DisbursementRecord | None
            The record, or None if unknown.
        """
        if not self._redis:
            return self._memory_records.get(tx_id)

        data = self._redis.hgetall(f"{TX_KEY_PREFIX}{tx_id}")
        if not data:
            logger.debug("No transaction found", extra={"tx_id": tx_id})
            return None
        return _record_from_hash(tx_id, data)

    async def list_records(self, limit: int | None = None) -> list[DisbursementRecord]:
        """List disbursements, oldest first.

        Parameters
        ----------
        limit : int | None
            Return only the most recent ``limit`` records.

        Returns
        -------
        list[DisbursementRecord]
            Recorded disbursements.
        """
        if limit is not None and limit < 1:
            return []

        if not self._redis:
            records = list(self._memory_records.values())
            return records[-limit:] if limit is not None else records

        start = -limit if limit is not None else 0
        tx_ids = self._redis.zrange(TX_INDEX_KEY, start, -1)
        pipe = self._redis.pipeline()
        for tx_id in tx_ids:
            pipe.hgetall(f"{TX_KEY_PREFIX}{tx_id}")
        rows = pipe.execute()
        return [_record_from_hash(tx_id, row) for tx_id, row in zip(tx_ids, rows) if row]

    def ping(self) -> bool:
        """Check the backing store answers."""
        if not self._redis:
            return True
        return bool(self._redis.ping())

    def close(self) -> None:
        """Close the Redis connection, if any."""
        if self._redis:
            logger.info("Closing ledger connection")
            self._redis.close()
            self._redis = None


def _record_from_hash(tx_id: str, data: dict) -> DisbursementRecord:
    return DisbursementRecord(
        tx_id=tx_id,
        destination=data["destination"],
        amount=Decimal(data["amount"]),
        timestamp=int(data["timestamp"]),
    )
