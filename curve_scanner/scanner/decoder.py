from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple
from eth_abi.exceptions import DecodingError
from sqlalchemy.orm import Session
from curve_scanner.scanner.errors import InvalidEventError
from curve_scanner.scanner.upsert import insert_if_absent
from curve_scanner.sources.chain.events import NEW_POOL_EVENT, TRADE_EVENT, decode_event_args
from curve_scanner.storage.models.pool import Pool
from curve_scanner.storage.models.trade import Trade
from curve_scanner.utils.sanitize import sanitize_log, to_hex
import logging

log = logging.getLogger(__name__)


class EventOutcome(Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class EventContext:
    block_number: int
    block_timestamp: datetime
    transaction_hash: str


@dataclass
class ChainLookups:
    """Block timestamps and canonical tx hashes for the logs of one chunk."""
    block_timestamps: Dict[int, datetime]
    receipt_hashes: Dict[str, str]

    def context_for(self, raw_log) -> EventContext:
        bn = int(raw_log["blockNumber"])
        return EventContext(
            block_number=bn,
            block_timestamp=self.block_timestamps[bn],
            transaction_hash=self.receipt_hashes[to_hex(raw_log["transactionHash"])],
        )


def _block_timestamp(client, block_number: int) -> Tuple[int, datetime]:
    block = client.get_block(block_number)
    return block_number, datetime.fromtimestamp(int(block["timestamp"]), tz=timezone.utc)


def _receipt_hash(client, tx_hash: str) -> Tuple[str, str]:
    receipt = client.get_transaction_receipt(tx_hash)
    if receipt is None:
        raise LookupError(f"No receipt for transaction {tx_hash}")
    return tx_hash, to_hex(receipt["transactionHash"])


def resolve_lookups(client, raw_logs: Iterable) -> ChainLookups:
    """Fetch each distinct block and receipt once, concurrently.

    Any lookup failure propagates and fails the chunk.
    """
    raw_logs = list(raw_logs)
    blocks = sorted({int(r["blockNumber"]) for r in raw_logs})
    hashes = sorted({to_hex(r["transactionHash"]) for r in raw_logs})
    if not raw_logs:
        return ChainLookups({}, {})

    # one worker per distinct lookup; chunk size bounds the fan-out
    workers = len(blocks) + len(hashes)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        ts_futures = [pool.submit(_block_timestamp, client, b) for b in blocks]
        rc_futures = [pool.submit(_receipt_hash, client, h) for h in hashes]
        block_timestamps = dict(f.result() for f in ts_futures)
        receipt_hashes = dict(f.result() for f in rc_futures)
    return ChainLookups(block_timestamps, receipt_hashes)


def _require(args: Dict, fields: Iterable[str], event: str) -> None:
    missing = [f for f in fields if not args.get(f)]
    if missing:
        raise InvalidEventError(f"{event} event missing required field(s): {', '.join(missing)}")


def _addr(value: str) -> str:
    return str(value).lower()


def map_pool_row(args: Dict, ctx: EventContext, chain_id: int, contract_address: str) -> Dict:
    """NewPool args + block/receipt context → `pools` row."""
    _require(args, ("creator", "tokenAddress", "nftName", "nftTicker"), "NewPool")
    return {
        "chain_id": chain_id,
        "contract_address": _addr(contract_address),
        "pool_id": int(args["poolId"]),
        "creator": _addr(args["creator"]),
        "token_address": _addr(args["tokenAddress"]),
        "token_decimals": int(args["tokenDecimals"]),
        "nft_name": args["nftName"],
        "nft_ticker": args["nftTicker"],
        "uri": args.get("uri") or None,
        "nft_description": args.get("nftDescription") or None,
        "conversion_rate": int(args["conversionRate"]),
        "token_supply": int(args["tokenSupply"]),
        "token_balance": int(args["tokenBalance"]),
        "eth_balance": int(args["ethBalance"]),
        "nft_price": int(args["nftPrice"]),
        "fee_rate": int(args["feeRate"]),
        "mintable": int(args["mintable"]),
        "lp_amount": int(args["lpAmount"]),
        "transaction_hash": ctx.transaction_hash,
        "block_number": ctx.block_number,
        "block_timestamp": ctx.block_timestamp,
        "webhook_sent": False,
    }


def map_trade_row(args: Dict, ctx: EventContext, chain_id: int, contract_address: str) -> Dict:
    """Trade args + block/receipt context → `trades` row."""
    _require(args, ("trader", "sender", "tokenAddress", "tokenName", "tokenTicker"), "Trade")
    return {
        "chain_id": chain_id,
        "contract_address": _addr(contract_address),
        "pool_id": int(args["poolId"]),
        "trader": _addr(args["trader"]),
        "sender": _addr(args["sender"]),
        "token_address": _addr(args["tokenAddress"]),
        "token_name": args["tokenName"],
        "token_ticker": args["tokenTicker"],
        "token_uri": args.get("tokenUri") or None,
        "quote_amount": int(args["quoteAmount"]),
        "base_amount": int(args["baseAmount"]),
        "fee": int(args["fee"]),
        "side": int(args["side"]),
        "pool_eth_balance": int(args["poolEthBalance"]),
        "pool_token_balance": int(args["poolTokenBalance"]),
        "transaction_hash": ctx.transaction_hash,
        "block_number": ctx.block_number,
        "block_timestamp": ctx.block_timestamp,
        "webhook_sent": False,
    }


def _decode(spec, raw_log) -> Optional[Dict]:
    try:
        return decode_event_args(spec, raw_log)
    except (DecodingError, ValueError, TypeError) as exc:
        log.warning(f"[decoder] undecodable {spec.name} log skipped: {exc} {sanitize_log(raw_log)}")
        return None


def apply_pool_log(session: Session, raw_log, lookups: ChainLookups,
                   chain_id: int, contract_address: str) -> EventOutcome:
    args = _decode(NEW_POOL_EVENT, raw_log)
    if args is None:
        return EventOutcome.SKIPPED
    try:
        row = map_pool_row(args, lookups.context_for(raw_log), chain_id, contract_address)
    except InvalidEventError as exc:
        log.warning(f"[decoder] {exc}; skipping {sanitize_log(raw_log)}")
        return EventOutcome.SKIPPED

    inserted = insert_if_absent(session, Pool, row)
    log.debug(f"Processed pool event tx={row['transaction_hash']} pool={row['pool_id']} inserted={inserted}")
    return EventOutcome.INSERTED if inserted else EventOutcome.DUPLICATE


def apply_trade_log(session: Session, raw_log, lookups: ChainLookups,
                    chain_id: int, contract_address: str) -> Tuple[EventOutcome, Optional[Dict]]:
    """Returns the outcome and, unless skipped, the mapped row."""
    args = _decode(TRADE_EVENT, raw_log)
    if args is None:
        return EventOutcome.SKIPPED, None
    try:
        row = map_trade_row(args, lookups.context_for(raw_log), chain_id, contract_address)
    except InvalidEventError as exc:
        log.warning(f"[decoder] {exc}; skipping {sanitize_log(raw_log)}")
        return EventOutcome.SKIPPED, None

    inserted = insert_if_absent(session, Trade, row)
    log.debug(f"Processed trade event tx={row['transaction_hash']} pool={row['pool_id']} inserted={inserted}")
    return (EventOutcome.INSERTED if inserted else EventOutcome.DUPLICATE), row


def chain_order(raw_logs: List) -> List:
    """Logs sorted by (block number, log index)."""
    return sorted(raw_logs, key=lambda r: (int(r["blockNumber"]), int(r.get("logIndex", 0))))
