from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from unittest.mock import patch
import pytest
from sqlalchemy import func, select
from curve_scanner.scanner.decoder import (
    ChainLookups, EventContext, EventOutcome, apply_pool_log, apply_trade_log,
    map_pool_row, map_trade_row, resolve_lookups,
)
from curve_scanner.scanner.errors import InvalidEventError
from curve_scanner.sources.chain.events import NEW_POOL_EVENT, TRADE_EVENT, decode_event_args
from curve_scanner.storage.models.pool import Pool
from curve_scanner.storage.models.trade import Trade
from conftest import CREATOR, CURVE, FACTORY, BASE_TS, pool_args, trade_args, tx_hash

CTX = EventContext(
    block_number=42,
    block_timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
    transaction_hash=tx_hash(999),
)


def test_topics_differ_per_event():
    assert NEW_POOL_EVENT.topic != TRADE_EVENT.topic
    assert TRADE_EVENT.topic.startswith("0x") and len(TRADE_EVENT.topic) == 66


def test_decodes_struct_args(chain):
    raw = chain.add_trade(block=10, quoteAmount=2**130)
    args = decode_event_args(TRADE_EVENT, raw)
    assert args["quoteAmount"] == 2**130
    assert args["tokenTicker"] == "CCAT"


def test_pool_row_mapping_lowercases_and_keeps_big_ints():
    args = pool_args(7, creator=CREATOR.upper().replace("0X", "0x"), tokenSupply=2**100)
    row = map_pool_row(args, CTX, 56, FACTORY)
    assert row["creator"] == CREATOR
    assert row["token_supply"] == 2**100
    assert row["pool_id"] == 7
    assert row["uri"] == "ipfs://cat"
    assert row["nft_description"] is None
    assert row["webhook_sent"] is False
    assert row["transaction_hash"] == CTX.transaction_hash


def test_trade_row_keeps_raw_side():
    row = map_trade_row(trade_args(side=2), CTX, 56, CURVE)
    assert row["side"] == 2
    assert row["token_uri"] is None


@pytest.mark.parametrize("field", ["tokenName", "tokenTicker"])
def test_trade_missing_required_string_is_invalid(field):
    with pytest.raises(InvalidEventError):
        map_trade_row(trade_args(**{field: ""}), CTX, 56, CURVE)


def test_pool_missing_name_is_invalid():
    with pytest.raises(InvalidEventError):
        map_pool_row(pool_args(nftName=""), CTX, 56, FACTORY)


def test_lookups_resolve_timestamp_and_receipt(chain):
    raw = chain.add_pool(block=5)
    lookups = resolve_lookups(chain, [raw])
    ctx = lookups.context_for(raw)
    assert ctx.block_timestamp == datetime.fromtimestamp(BASE_TS + 15, tz=timezone.utc)
    assert ctx.transaction_hash == raw["transactionHash"]


def test_lookups_fan_out_one_worker_per_distinct_lookup(chain):
    # 20 blocks, 20 txs, plus a second log in an already-seen tx
    raws = [chain.add_trade(block=100 + i) for i in range(20)]
    raws.append(dict(raws[0], logIndex=1))
    with patch("curve_scanner.scanner.decoder.ThreadPoolExecutor", wraps=ThreadPoolExecutor) as executor:
        lookups = resolve_lookups(chain, raws)
    executor.assert_called_once_with(max_workers=40)
    assert len(lookups.block_timestamps) == 20
    assert len(lookups.receipt_hashes) == 20


def test_lookup_failure_propagates(chain):
    raw = chain.add_trade(block=5)
    chain.fail_receipts.add(raw["transactionHash"])
    with pytest.raises(TimeoutError):
        resolve_lookups(chain, [raw])


def test_apply_pool_is_create_if_absent(chain, session_factory):
    raw = chain.add_pool(block=5)
    lookups = resolve_lookups(chain, [raw])
    with session_factory() as db:
        assert apply_pool_log(db, raw, lookups, 56, FACTORY) is EventOutcome.INSERTED
        assert apply_pool_log(db, raw, lookups, 56, FACTORY) is EventOutcome.DUPLICATE
        db.commit()
        assert db.scalar(select(func.count()).select_from(Pool)) == 1


def test_invalid_trade_is_skipped_not_raised(chain, session_factory):
    raw = chain.add_trade(block=5, tokenName="")
    lookups = resolve_lookups(chain, [raw])
    with session_factory() as db:
        outcome, row = apply_trade_log(db, raw, lookups, 56, CURVE)
        assert outcome is EventOutcome.SKIPPED and row is None
        assert db.scalar(select(func.count()).select_from(Trade)) == 0


def test_undecodable_log_is_skipped(chain, session_factory):
    raw = chain.add_log(TRADE_EVENT, CURVE, {}, block=5, data=b"\x01\x02")
    with session_factory() as db:
        outcome, _ = apply_trade_log(db, raw, ChainLookups({}, {}), 56, CURVE)
        assert outcome is EventOutcome.SKIPPED
