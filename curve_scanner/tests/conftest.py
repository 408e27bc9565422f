from dotenv import load_dotenv
import pathlib

# Automatically load .env from project root
load_dotenv(dotenv_path=pathlib.Path(__file__).parent.parent.parent / ".env")

import itertools
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from curve_scanner.config.settings import ScannerConfig
from curve_scanner.sources.chain.client import ClientPair
from curve_scanner.sources.chain.events import NEW_POOL_EVENT, TRADE_EVENT, encode_event_data
from curve_scanner.storage.db_utils import init_db

FACTORY = "0x" + "11" * 20
CURVE = "0x" + "22" * 20
CREATOR = "0x" + "aa" * 20
TOKEN = "0x" + "bb" * 20
TRADER = "0x" + "cc" * 20
ROUTER = "0x" + "dd" * 20
BASE_TS = 1_700_000_000

_tx_counter = itertools.count(1)


def tx_hash(n: int | None = None) -> str:
    return "0x" + format(n if n is not None else next(_tx_counter), "064x")


def pool_args(pool_id: int = 1, **overrides) -> dict:
    args = {
        "poolId": pool_id,
        "creator": CREATOR,
        "tokenAddress": TOKEN,
        "tokenDecimals": 6,
        "nftName": "Curve Cat",
        "nftTicker": "CCAT",
        "uri": "ipfs://cat",
        "nftDescription": "",
        "conversionRate": 10**18,
        "tokenSupply": 1_000_000 * 10**6,
        "tokenBalance": 800_000 * 10**6,
        "ethBalance": 0,
        "nftPrice": 5 * 10**16,
        "feeRate": 100,
        "mintable": 1,
        "lpAmount": 200_000 * 10**6,
        "time": BASE_TS,
    }
    args.update(overrides)
    return args


def trade_args(pool_id: int = 1, **overrides) -> dict:
    args = {
        "poolId": pool_id,
        "trader": TRADER,
        "sender": ROUTER,
        "tokenAddress": TOKEN,
        "tokenName": "Curve Cat",
        "tokenTicker": "CCAT",
        "tokenUri": "",
        "quoteAmount": 1_500_000_000_000_000_000,
        "baseAmount": 2_000_000,
        "fee": 15 * 10**15,
        "side": 1,
        "poolEthBalance": 3 * 10**18,
        "poolTokenBalance": 799_998 * 10**6,
        "time": BASE_TS,
    }
    args.update(overrides)
    return args


class FakeChainClient:
    """In-memory stand-in for ChainClient serving ABI-encoded logs."""

    def __init__(self, height: int = 1_000, label: str = "primary"):
        self.height = height
        self.label = label
        self.logs: list[dict] = []
        self.calls: list[tuple] = []
        self.fail_height = False
        self.fail_receipts: set[str] = set()

    # ── chain population ────────────────────────────────────────────────
    def add_log(self, spec, address: str, args: dict, block: int, tx: str | None = None, log_index: int = 0,
                data: bytes | None = None) -> dict:
        raw = {
            "address": address.lower(),
            "topics": [spec.topic],
            "data": data if data is not None else encode_event_data(spec, args),
            "blockNumber": block,
            "transactionHash": tx or tx_hash(),
            "logIndex": log_index,
        }
        self.logs.append(raw)
        return raw

    def add_pool(self, block: int, pool_id: int = 1, **overrides) -> dict:
        return self.add_log(NEW_POOL_EVENT, FACTORY, pool_args(pool_id, **overrides), block)

    def add_trade(self, block: int, pool_id: int = 1, log_index: int = 0, **overrides) -> dict:
        return self.add_log(TRADE_EVENT, CURVE, trade_args(pool_id, **overrides), block, log_index=log_index)

    # ── ChainClient interface ───────────────────────────────────────────
    def get_block_number(self) -> int:
        self.calls.append(("block_number",))
        if self.fail_height:
            raise ConnectionError("height unavailable")
        return self.height

    def get_logs(self, address, topic, from_block, to_block):
        self.calls.append(("get_logs", topic, from_block, to_block))
        return [
            dict(r) for r in self.logs
            if r["address"] == address.lower() and r["topics"][0] == topic
            and from_block <= r["blockNumber"] <= to_block
        ]

    def get_block(self, block_number):
        return {"number": block_number, "timestamp": BASE_TS + 3 * block_number}

    def get_transaction_receipt(self, tx):
        if tx in self.fail_receipts:
            raise TimeoutError(f"receipt timeout for {tx}")
        return {"transactionHash": tx}

    def log_fetch_ranges(self):
        return [(c[2], c[3]) for c in self.calls if c[0] == "get_logs"]


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def config():
    return ScannerConfig(
        chain_id=56,
        scanner_name="bsc-test",
        rpc_url="http://primary.invalid",
        pool_factory_address=FACTORY,
        trading_curve_address=CURVE,
        confirmations=12,
        chunk_size=1_000,
        archive_threshold=128,
        poll_interval_ms=1,
        reconnect_delay_ms=5_000,
        max_reconnect_attempts=10,
    )


@pytest.fixture
def chain():
    return FakeChainClient()


@pytest.fixture
def pair(chain):
    return ClientPair(primary=chain)
