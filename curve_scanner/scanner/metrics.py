from decimal import Decimal
from typing import NamedTuple, Optional
from sqlalchemy import select, update
from sqlalchemy.orm import Session
from curve_scanner.storage.models.pool import Pool
from curve_scanner.utils.decimal_math import market_cap, token_price
import logging

log = logging.getLogger(__name__)


class PoolMetrics(NamedTuple):
    token_price: Decimal
    market_cap: Decimal


def compute_metrics(quote_amount, base_amount, token_supply) -> Optional[PoolMetrics]:
    """None unless both trade amounts are present and positive."""
    if not quote_amount or not base_amount:
        return None
    if int(quote_amount) <= 0 or int(base_amount) <= 0:
        return None
    price = token_price(quote_amount, base_amount)
    return PoolMetrics(price, market_cap(price, token_supply))


def derive_pool_metrics(session: Session, chain_id: int, pool_id: int,
                        quote_amount, base_amount) -> Optional[PoolMetrics]:
    """Reprice the pool a trade belongs to.

    Missing pool or unusable amounts leave the stored metrics as they are.
    """
    pool = session.execute(
        select(Pool.id, Pool.token_supply)
        .where(Pool.chain_id == chain_id, Pool.pool_id == pool_id)
        .order_by(Pool.block_number.desc())
        .limit(1)
    ).first()
    if pool is None:
        log.debug(f"[metrics] no pool {chain_id}/{pool_id} yet; metrics unchanged")
        return None

    metrics = compute_metrics(quote_amount, base_amount, pool.token_supply)
    if metrics is None:
        return None

    session.execute(
        update(Pool)
        .where(Pool.id == pool.id)
        .values(token_price=metrics.token_price, market_cap=metrics.market_cap)
    )
    log.debug(f"[metrics] pool {pool_id}: price={metrics.token_price} mcap={metrics.market_cap}")
    return metrics
