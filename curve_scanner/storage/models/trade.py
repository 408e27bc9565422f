# models/trade.py
from sqlalchemy import (
    Column, Integer, BigInteger, String, Text, Boolean,
    DateTime, Index, UniqueConstraint, false, func,
)
from curve_scanner.storage.base import Base
from curve_scanner.storage.types import Uint256String
from curve_scanner.utils.sanitize import sanitize_row

# 1 = buy; every other emitted value (0 or 2 seen on-chain) is a sell
SIDE_BUY = 1


def trade_side_label(side: int) -> str:
    return "buy" if side == SIDE_BUY else "sell"


class Trade(Base):
    __tablename__ = "trades"

    id                 = Column(Integer, primary_key=True, autoincrement=True)

    # ─── chain / contract ───────────────────────────────────────────────
    chain_id           = Column(Integer,     nullable=False, index=True)
    contract_address   = Column(String(42),  nullable=False)    # bonding curve, lowercase

    # ─── Trade event payload ────────────────────────────────────────────
    pool_id            = Column(BigInteger,  nullable=False, index=True)
    trader             = Column(String(42),  nullable=False, index=True)
    sender             = Column(String(42),  nullable=False)
    token_address      = Column(String(42),  nullable=False, index=True)
    token_name         = Column(String(255), nullable=False)
    token_ticker       = Column(String(100), nullable=False)
    token_uri          = Column(Text)
    quote_amount       = Column(Uint256String, nullable=False)  # wei, 18 dp
    base_amount        = Column(Uint256String, nullable=False)  # token units, 6 dp
    fee                = Column(Uint256String, nullable=False)
    side               = Column(Integer,     nullable=False)    # raw value as emitted
    pool_eth_balance   = Column(Uint256String, nullable=False)
    pool_token_balance = Column(Uint256String, nullable=False)

    # ─── tx identity ────────────────────────────────────────────────────
    transaction_hash   = Column(String(66),  nullable=False, index=True)
    block_number       = Column(BigInteger,  nullable=False, index=True)
    block_timestamp    = Column(DateTime(timezone=True), nullable=False, index=True)

    # owned by the webhook dispatcher
    webhook_sent       = Column(Boolean, nullable=False, default=False, server_default=false())

    created_at         = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at         = Column(DateTime(timezone=True), nullable=False,
                                server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint(
            "chain_id", "transaction_hash", "pool_id", "block_timestamp",
            name="uq_trades_natural_key",
        ),
        Index("trades_chain_id_pool_id_block_timestamp_idx", "chain_id", "pool_id", "block_timestamp"),
        Index("trades_webhook_sent_idx", "webhook_sent"),
    )

    NATURAL_KEY = ("chain_id", "transaction_hash", "pool_id", "block_timestamp")

    def to_dict(self) -> dict:
        out = sanitize_row(self)
        out["side_label"] = trade_side_label(self.side)
        return out

    def __repr__(self) -> str:
        return f"<Trade chain={self.chain_id} pool={self.pool_id} {trade_side_label(self.side)} tx={self.transaction_hash}>"
