# models/pool.py
from sqlalchemy import (
    Column, Integer, BigInteger, String, Text, Boolean, Numeric,
    DateTime, Index, UniqueConstraint, false, func,
)
from curve_scanner.storage.base import Base
from curve_scanner.storage.types import Uint256String
from curve_scanner.utils.sanitize import sanitize_row


class Pool(Base):
    __tablename__ = "pools"

    id               = Column(Integer, primary_key=True, autoincrement=True)

    # ─── chain / contract ───────────────────────────────────────────────
    chain_id         = Column(Integer,     nullable=False, index=True)
    contract_address = Column(String(42),  nullable=False)      # pool factory, lowercase

    # ─── NewPool event payload ──────────────────────────────────────────
    pool_id          = Column(BigInteger,  nullable=False)
    creator          = Column(String(42),  nullable=False, index=True)
    token_address    = Column(String(42),  nullable=False, index=True)
    token_decimals   = Column(Integer,     nullable=False)
    nft_name         = Column(String(255), nullable=False)
    nft_ticker       = Column(String(100), nullable=False)
    uri              = Column(Text)
    nft_description  = Column(Text)
    conversion_rate  = Column(Uint256String, nullable=False)
    token_supply     = Column(Uint256String, nullable=False)
    token_balance    = Column(Uint256String, nullable=False)
    eth_balance      = Column(Uint256String, nullable=False)
    nft_price        = Column(Uint256String, nullable=False)
    fee_rate         = Column(Uint256String, nullable=False)
    mintable         = Column(Integer,     nullable=False)
    lp_amount        = Column(Uint256String, nullable=False)

    # ─── tx identity ────────────────────────────────────────────────────
    transaction_hash = Column(String(66),  nullable=False, index=True)
    block_number     = Column(BigInteger,  nullable=False, index=True)
    block_timestamp  = Column(DateTime(timezone=True), nullable=False, index=True)

    # ─── derived on every trade, NULL until the first priced trade ──────
    token_price      = Column(Numeric(38, 18), nullable=True)
    market_cap       = Column(Numeric(38, 18), nullable=True)

    # owned by the webhook dispatcher
    webhook_sent     = Column(Boolean, nullable=False, default=False, server_default=false())

    created_at       = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at       = Column(DateTime(timezone=True), nullable=False,
                              server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint(
            "chain_id", "pool_id", "transaction_hash", "block_timestamp",
            name="uq_pools_natural_key",
        ),
        Index("pools_chain_id_pool_id_idx", "chain_id", "pool_id"),
        Index("pools_webhook_sent_idx", "webhook_sent"),
    )

    NATURAL_KEY = ("chain_id", "pool_id", "transaction_hash", "block_timestamp")

    def to_dict(self) -> dict:
        return sanitize_row(self)

    def __repr__(self) -> str:         # for nicer logs
        return f"<Pool chain={self.chain_id} id={self.pool_id} {self.nft_ticker} tx={self.transaction_hash}>"
