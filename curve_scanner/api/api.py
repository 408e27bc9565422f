from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session
from curve_scanner.storage.db import get_db
from curve_scanner.storage.models.pool import Pool
from curve_scanner.storage.models.scanner_state import ScannerState
from curve_scanner.storage.models.trade import Trade


router = APIRouter()

@router.get("/")
def read_root():
    return {"message": "curve-scanner API"}

@router.get("/scanner-states")
def list_scanner_states(db: Session = Depends(get_db)):
    states = db.execute(select(ScannerState).order_by(ScannerState.id)).scalars().all()
    return [s.to_dict() for s in states]

@router.get("/scanner-states/{chain_id}/{scanner_name}")
def get_scanner_state(chain_id: int, scanner_name: str, db: Session = Depends(get_db)):
    state = db.execute(
        select(ScannerState).where(
            ScannerState.chain_id == chain_id,
            ScannerState.scanner_name == scanner_name,
        )
    ).scalar_one_or_none()
    if state is None:
        raise HTTPException(status_code=404, detail=f"No scanner state for {chain_id}/{scanner_name}")
    return state.to_dict()

# declared before /pools/{row_id} so the literal path wins
@router.get("/pools/by-pool-id")
def get_pool_by_pool_id(pool_id: int = Query(...), chain_id: int = Query(56), db: Session = Depends(get_db)):
    pool = db.execute(
        select(Pool)
        .where(Pool.chain_id == chain_id, Pool.pool_id == pool_id)
        .order_by(Pool.block_number.desc())
        .limit(1)
    ).scalar_one_or_none()
    if pool is None:
        raise HTTPException(status_code=404, detail=f"No pool {pool_id} on chain {chain_id}")
    return pool.to_dict()

@router.get("/pools/{row_id}")
def get_pool(row_id: int, db: Session = Depends(get_db)):
    pool = db.get(Pool, row_id)
    if pool is None:
        raise HTTPException(status_code=404, detail=f"Pool {row_id} not found")
    return pool.to_dict()

@router.get("/trades/{row_id}")
def get_trade(row_id: int, db: Session = Depends(get_db)):
    trade = db.get(Trade, row_id)
    if trade is None:
        raise HTTPException(status_code=404, detail=f"Trade {row_id} not found")
    return trade.to_dict()
