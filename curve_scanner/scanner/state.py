from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.orm import Session
from curve_scanner.storage.db_utils import dialect_insert
from curve_scanner.storage.models.scanner_state import ScannerState
import logging

log = logging.getLogger(__name__)

# keeps a runaway traceback out of the state row
MAX_ERROR_MESSAGE = 2000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScannerStateStore:
    """Reads and writes the `scanner_states` row of one scan stream.

    Every method except `commit_chunk` opens and commits its own session.
    `commit_chunk` runs inside the caller's chunk transaction so the frontier
    and the chunk's rows land together.
    """

    def __init__(self, session_factory, chain_id: int, scanner_name: str):
        self.session_factory = session_factory
        self.chain_id = chain_id
        self.scanner_name = scanner_name

    def _where(self, stmt):
        return stmt.where(
            ScannerState.chain_id == self.chain_id,
            ScannerState.scanner_name == self.scanner_name,
        )

    def load_or_create(self) -> ScannerState:
        with self.session_factory() as db:
            db.execute(
                dialect_insert(db, ScannerState.__table__).values(
                    chain_id=self.chain_id,
                    scanner_name=self.scanner_name,
                    last_processed_block=0,
                    is_running=False,
                    total_blocks_processed=0,
                    total_events_processed=0,
                ).on_conflict_do_nothing(index_elements=["chain_id", "scanner_name"])
            )
            db.commit()
            state = db.execute(self._where(select(ScannerState))).scalar_one()
            db.expunge(state)
        log.info(
            f"Loaded scanner state {self.chain_id}/{self.scanner_name}: "
            f"last_processed_block={state.last_processed_block} "
            f"blocks={state.total_blocks_processed} events={state.total_events_processed}"
        )
        return state

    def get(self) -> Optional[ScannerState]:
        with self.session_factory() as db:
            state = db.execute(self._where(select(ScannerState))).scalar_one_or_none()
            if state is not None:
                db.expunge(state)
            return state

    def update(self, **fields) -> None:
        with self.session_factory() as db:
            db.execute(self._where(update(ScannerState)).values(**fields))
            db.commit()

    def mark_started(self) -> None:
        self.update(is_running=True, last_run_at=utcnow())

    def mark_stopped(self) -> None:
        self.update(is_running=False)

    def record_success(self) -> None:
        self.update(last_success_at=utcnow())

    def record_error(self, message: str) -> None:
        self.update(last_error_at=utcnow(), last_error_message=message[:MAX_ERROR_MESSAGE])

    def set_last_processed(self, block: int) -> None:
        self.update(last_processed_block=block)

    def commit_chunk(self, db: Session, chunk_end: int, blocks: int, events: int) -> bool:
        """Advance the frontier to `chunk_end` and bump the counters in one UPDATE.

        Guarded so the frontier never moves backwards; returns False when the
        row was already at or past `chunk_end`.
        """
        stmt = (
            self._where(update(ScannerState))
            .where(ScannerState.last_processed_block < chunk_end)
            .values(
                last_processed_block=chunk_end,
                total_blocks_processed=ScannerState.total_blocks_processed + blocks,
                total_events_processed=ScannerState.total_events_processed + events,
            )
            .execution_options(synchronize_session=False)
        )
        return db.execute(stmt).rowcount == 1


def reset_state(db: Session, state: ScannerState) -> None:
    """Operator reset: zero progress and telemetry, keep the row."""
    state.last_processed_block = 0
    state.is_running = False
    state.total_blocks_processed = 0
    state.total_events_processed = 0
    state.last_run_at = None
    state.last_success_at = None
    state.last_error_at = None
    state.last_error_message = None
    db.add(state)
