from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional
import time
from curve_scanner.config.settings import ScannerConfig
from curve_scanner.scanner.decoder import (
    EventOutcome, apply_pool_log, apply_trade_log, chain_order, resolve_lookups,
)
from curve_scanner.scanner.metrics import derive_pool_metrics
from curve_scanner.scanner.state import ScannerStateStore
from curve_scanner.sources.chain.blocks import compute_scan_range, walk_block_ranges
from curve_scanner.sources.chain.client import ClientHandle, ClientPair, select_client
from curve_scanner.sources.chain.events import NEW_POOL_EVENT, TRADE_EVENT, fetch_event_logs
import logging

log = logging.getLogger(__name__)


class ScanStatus(Enum):
    IDLE = "idle"              # chain hasn't advanced past the frontier
    COMMITTED = "committed"    # every chunk of the range was committed
    FAILED = "failed"          # an error stopped the iteration; earlier chunks stay committed


@dataclass
class ChunkResult:
    from_block: int
    to_block: int
    used_archive: bool
    pool_outcomes: Counter = field(default_factory=Counter)
    trade_outcomes: Counter = field(default_factory=Counter)
    repriced_pools: int = 0
    duration_seconds: float = 0.0

    @property
    def blocks(self) -> int:
        return self.to_block - self.from_block + 1

    @property
    def events(self) -> int:
        return sum(self.pool_outcomes.values()) + sum(self.trade_outcomes.values())

    @property
    def skipped(self) -> int:
        return self.pool_outcomes[EventOutcome.SKIPPED] + self.trade_outcomes[EventOutcome.SKIPPED]


@dataclass
class ScanResult:
    status: ScanStatus
    last_processed_block: int
    chunks: List[ChunkResult] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status is not ScanStatus.FAILED


class RangeScanner:
    """One pass over the unprocessed, confirmed block range.

    Chunks are processed strictly in order; each one is a single DB
    transaction holding its rows, the pool repricing and the frontier update.
    """

    def __init__(self, config: ScannerConfig, clients: ClientHandle,
                 session_factory, state_store: Optional[ScannerStateStore] = None):
        self.config = config
        self.clients = clients
        self.session_factory = session_factory
        self.state = state_store or ScannerStateStore(session_factory, config.chain_id, config.scanner_name)
        self.last_processed_block = 0

    def load_state(self) -> int:
        self.last_processed_block = int(self.state.load_or_create().last_processed_block)
        return self.last_processed_block

    def run_once(self, stop_requested: Callable[[], bool] = lambda: False) -> ScanResult:
        """Scan everything between the frontier and the safe block.

        Never raises for scan errors: they come back as `ScanStatus.FAILED`.
        """
        pair = self.clients.current()
        try:
            latest = pair.primary.get_block_number()
        except Exception as exc:
            log.error(f"[scanner] failed to read chain height: {exc}")
            return ScanResult(ScanStatus.FAILED, self.last_processed_block, error=exc)

        scan_range = compute_scan_range(latest, self.config.confirmations, self.last_processed_block)
        if scan_range is None:
            return ScanResult(ScanStatus.IDLE, self.last_processed_block)

        start, end = scan_range
        log.info(f"Processing blocks {start} to {end}")
        chunks: List[ChunkResult] = []
        for from_block, to_block in walk_block_ranges(start, end, step=self.config.chunk_size):
            if stop_requested():
                log.info(f"[scanner] stop requested; halting before block {from_block}")
                break
            try:
                chunks.append(self.process_chunk(pair, from_block, to_block))
            except Exception as exc:
                log.error(f"[scanner] chunk {from_block}-{to_block} failed: {exc}", exc_info=True)
                return ScanResult(ScanStatus.FAILED, self.last_processed_block, chunks, exc)

        return ScanResult(ScanStatus.COMMITTED, self.last_processed_block, chunks)

    def _client_for(self, pair: ClientPair, to_block: int):
        if pair.archive is None:
            return pair.primary, False
        height = pair.primary.get_block_number()
        client = select_client(pair, height, to_block, self.config.archive_threshold)
        return client, client is pair.archive

    def fetch_chunk_logs(self, client, from_block: int, to_block: int):
        """(pool logs, trade logs) for the range; both fetched concurrently."""
        with ThreadPoolExecutor(max_workers=2) as pool:
            pools_f = pool.submit(fetch_event_logs, client, NEW_POOL_EVENT,
                                  self.config.pool_factory_address, from_block, to_block)
            trades_f = pool.submit(fetch_event_logs, client, TRADE_EVENT,
                                   self.config.trading_curve_address, from_block, to_block)
            return pools_f.result(), trades_f.result()

    def process_chunk(self, pair: ClientPair, from_block: int, to_block: int) -> ChunkResult:
        started = time.time()
        client, used_archive = self._client_for(pair, to_block)
        if used_archive:
            log.info(f"Using archive node for block range {from_block} to {to_block}")

        pool_logs, trade_logs = self.fetch_chunk_logs(client, from_block, to_block)
        lookups = resolve_lookups(client, pool_logs + trade_logs)

        result = ChunkResult(from_block, to_block, used_archive)
        cfg = self.config
        with self.session_factory() as db:
            try:
                # pools first so a trade in the same chunk can find its pool
                for raw in chain_order(pool_logs):
                    outcome = apply_pool_log(db, raw, lookups, cfg.chain_id, cfg.pool_factory_address)
                    result.pool_outcomes[outcome] += 1

                for raw in chain_order(trade_logs):
                    outcome, row = apply_trade_log(db, raw, lookups, cfg.chain_id, cfg.trading_curve_address)
                    result.trade_outcomes[outcome] += 1
                    if outcome is EventOutcome.INSERTED:
                        if derive_pool_metrics(db, cfg.chain_id, row["pool_id"],
                                               row["quote_amount"], row["base_amount"]) is not None:
                            result.repriced_pools += 1

                advanced = self.state.commit_chunk(db, to_block, result.blocks,
                                                   len(pool_logs) + len(trade_logs))
                db.commit()
            except Exception:
                db.rollback()
                raise

        if not advanced:
            log.warning(f"[scanner] state already at or past {to_block}; frontier not moved")
        self.last_processed_block = max(self.last_processed_block, to_block)
        result.duration_seconds = time.time() - started

        log.info(
            f"Processed {len(trade_logs)} trades and {len(pool_logs)} pools "
            f"blocks {from_block}-{to_block} archive={used_archive} "
            f"skipped={result.skipped} ({result.duration_seconds:.2f}s)"
        )
        return result
