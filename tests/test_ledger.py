"""Tests for the transaction ledger."""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from conftest import RECIPIENT

from powtap.faucet.ledger import TX_INDEX_KEY, DisbursementRecord, TransactionLedger

TX_A = "0x" + "a" * 64
TX_B = "0x" + "b" * 64
TX_C = "0x" + "c" * 64


class TestDisbursementRecord:
    """Tests for DisbursementRecord."""

    def test_to_dict(self):
        """Amount serializes as a string."""
        record = DisbursementRecord(
            tx_id=TX_A, destination=RECIPIENT, amount=Decimal("1.5"), timestamp=1700000000
        )

        assert record.to_dict() == {
            "tx_id": TX_A,
            "destination": RECIPIENT,
            "amount": "1.5",
            "timestamp": 1700000000,
        }


class TestTransactionLedgerMemory:
    """Tests for the in-memory ledger."""

    def test_not_persistent(self):
        """Without Redis nothing survives a restart."""
        assert not TransactionLedger().persistent

    @pytest.mark.asyncio
    async def test_record_and_get(self):
        """A recorded transfer can be looked up by hash."""
        ledger = TransactionLedger()

        stored = await ledger.record(TX_A, RECIPIENT, Decimal("1"))
        fetched = await ledger.get(TX_A)

        assert fetched == stored
        assert fetched.amount == Decimal("1")
        assert fetched.timestamp > 0

    @pytest.mark.asyncio
    async def test_get_unknown(self):
        """Unknown hashes return None."""
        assert await TransactionLedger().get(TX_A) is None

    @pytest.mark.asyncio
    async def test_list_in_order(self):
        """Records list oldest first."""
        ledger = TransactionLedger()
        for tx_id in (TX_A, TX_B, TX_C):
            await ledger.record(tx_id, RECIPIENT, Decimal("1"))

        records = await ledger.list_records()

        assert [r.tx_id for r in records] == [TX_A, TX_B, TX_C]

    @pytest.mark.asyncio
    async def test_list_limit(self):
        """A limit returns only the most recent records."""
        ledger = TransactionLedger()
        for tx_id in (TX_A, TX_B, TX_C):
            await ledger.record(tx_id, RECIPIENT, Decimal("1"))

        records = await ledger.list_records(limit=2)

        assert [r.tx_id for r in records] == [TX_B, TX_C]

    @pytest.mark.asyncio
    async def test_list_limit_zero(self):
        """A zero limit returns nothing rather than everything."""
        ledger = TransactionLedger()
        await ledger.record(TX_A, RECIPIENT, Decimal("1"))

        assert await ledger.list_records(limit=0) == []

    def test_ping(self):
        """The in-memory store is always ready."""
        assert TransactionLedger().ping()


class TestTransactionLedgerRedis:
    """Tests for the Redis-backed ledger."""

    def test_redis_init_failure_fallback(self):
        """Falls back to memory when Redis connection fails."""
        with patch("redis.Redis") as mock_redis_class:
            mock_redis_class.from_url.return_value.ping.side_effect = ConnectionError("refused")
            ledger = TransactionLedger(redis_url="redis://invalid:9999")

        assert ledger._redis is None
        assert not ledger.persistent

    def test_redis_connected(self):
        """A reachable Redis makes the ledger persistent."""
        with patch("redis.Redis") as mock_redis_class:
            ledger = TransactionLedger(redis_url="redis://localhost:6379")

        mock_redis_class.from_url.assert_called_once_with(
            "redis://localhost:6379", decode_responses=True
        )
        assert ledger.persistent

    @pytest.mark.asyncio
    async def test_redis_record(self):
        """Records are written as a hash plus an index entry."""
        mock_redis = MagicMock()
        pipe = mock_redis.pipeline.return_value
        ledger = TransactionLedger()
        ledger._redis = mock_redis

        record = await ledger.record(TX_A, RECIPIENT, Decimal("2"))

        pipe.hset.assert_called_once_with(
            f"powtap:tx:{TX_A}",
            mapping={
                "destination": RECIPIENT,
                "amount": "2",
                "timestamp": record.timestamp,
            },
        )
        pipe.zadd.assert_called_once_with(TX_INDEX_KEY, {TX_A: record.timestamp})
        pipe.execute.assert_called_once()

    @pytest.mark.asyncio
    async def test_redis_get(self):
        """Lookups decode the stored hash."""
        mock_redis = MagicMock()
        mock_redis.hgetall.return_value = {
            "destination": RECIPIENT,
            "amount": "3",
            "timestamp": "1700000000",
        }
        ledger = TransactionLedger()
        ledger._redis = mock_redis

        record = await ledger.get(TX_A)

        assert record == DisbursementRecord(TX_A, RECIPIENT, Decimal("3"), 1700000000)

    @pytest.mark.asyncio
    async def test_redis_get_missing(self):
        """An empty hash means the transaction is unknown."""
        mock_redis = MagicMock()
        mock_redis.hgetall.return_value = {}
        ledger = TransactionLedger()
        ledger._redis = mock_redis

        assert await ledger.get(TX_A) is None

    @pytest.mark.asyncio
    async def test_redis_list(self):
        """Listing reads the index then each hash."""
        mock_redis = MagicMock()
        mock_redis.zrange.return_value = [TX_A, TX_B]
        mock_redis.pipeline.return_value.execute.return_value = [
            {"destination": RECIPIENT, "amount": "1", "timestamp": "1"},
            {"destination": RECIPIENT, "amount": "2", "timestamp": "2"},
        ]
        ledger = TransactionLedger()
        ledger._redis = mock_redis

        records = await ledger.list_records(limit=2)

        mock_redis.zrange.assert_called_once_with(TX_INDEX_KEY, -2, -1)
        assert [r.tx_id for r in records] == [TX_A, TX_B]
        assert records[1].amount == Decimal("2")

    @pytest.mark.asyncio
    async def test_redis_list_limit_zero(self):
        """A zero limit never reaches Redis."""
        mock_redis = MagicMock()
        ledger = TransactionLedger()
        ledger._redis = mock_redis

        assert await ledger.list_records(limit=0) == []
        mock_redis.zrange.assert_not_called()

    def test_close(self):
        """Close releases the Redis connection."""
        mock_redis = MagicMock()
        ledger = TransactionLedger()
        ledger._redis = mock_redis

        ledger.close()

        mock_redis.close.assert_called_once()
        assert ledger._redis is None
