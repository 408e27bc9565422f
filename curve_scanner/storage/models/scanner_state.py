from sqlalchemy import Column, Integer, BigInteger, String, Text, Boolean, DateTime, UniqueConstraint, false, func
from curve_scanner.storage.base import Base


class ScannerState(Base):
    """Durable scan progress for one (chain, scanner name) stream.

    `last_processed_block` is the highest block whose events are committed;
    the counters move in the same UPDATE, once per committed chunk.
    """
    __tablename__ = "scanner_states"

    id                     = Column(Integer, primary_key=True, autoincrement=True)
    chain_id               = Column(Integer,    nullable=False)
    scanner_name           = Column(String(64), nullable=False)

    last_processed_block   = Column(BigInteger, nullable=False, default=0)
    is_running             = Column(Boolean,    nullable=False, default=False, server_default=false())

    last_run_at            = Column(DateTime(timezone=True), nullable=True)
    last_success_at        = Column(DateTime(timezone=True), nullable=True)
    last_error_at          = Column(DateTime(timezone=True), nullable=True)
    last_error_message     = Column(Text, nullable=True)

    total_blocks_processed = Column(BigInteger, nullable=False, default=0)
    total_events_processed = Column(BigInteger, nullable=False, default=0)

    created_at             = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at             = Column(DateTime(timezone=True), nullable=False,
                                    server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("chain_id", "scanner_name", name="uq_scanner_states_chain_name"),
    )

    def to_dict(self) -> dict:
        return {
            "chain_id": self.chain_id,
            "scanner_name": self.scanner_name,
            "last_processed_block": self.last_processed_block,
            "is_running": self.is_running,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_success_at": self.last_success_at.isoformat() if self.last_success_at else None,
            "last_error_at": self.last_error_at.isoformat() if self.last_error_at else None,
            "last_error_message": self.last_error_message,
            "total_blocks_processed": self.total_blocks_processed,
            "total_events_processed": self.total_events_processed,
        }

    def __repr__(self) -> str:
        return f"<ScannerState {self.chain_id}/{self.scanner_name} @ {self.last_processed_block}>"
