from dataclasses import dataclass
from typing import Optional
import threading
from web3 import Web3, HTTPProvider
import backoff
import logging

logger = logging.getLogger(__name__)

RPC_TIMEOUT_SECS = 10


@backoff.on_exception(backoff.expo, Exception, max_tries=5, jitter=None)
def _create_web3_client(rpc_url: str) -> Web3:
    logger.info(f"Connecting to RPC: {rpc_url}")
    w3 = Web3(HTTPProvider(rpc_url, request_kwargs={"timeout": RPC_TIMEOUT_SECS}))

    if not w3.is_connected():
        raise ConnectionError(f"Failed to connect to RPC: {rpc_url}")

    logger.info(f"Connected to {rpc_url} ✅")
    return w3


class ChainClient:
    """The four JSON-RPC reads the scanner needs, over one Web3 connection."""

    def __init__(self, w3: Web3, label: str = "primary"):
        self.w3 = w3
        self.label = label

    @classmethod
    def connect(cls, rpc_url: str, label: str = "primary") -> "ChainClient":
        return cls(_create_web3_client(rpc_url), label=label)

    def get_block_number(self) -> int:
        return self.w3.eth.block_number

    @backoff.on_exception(backoff.expo, Exception, max_tries=3)
    def get_logs(self, address: str, topic: str, from_block: int, to_block: int):
        return self.w3.eth.get_logs({
            "fromBlock": from_block,
            "toBlock": to_block,
            "address": Web3.to_checksum_address(address),
            "topics": [topic],
        })

    def get_block(self, block_number: int):
        return self.w3.eth.get_block(block_number, full_transactions=False)

    def get_transaction_receipt(self, tx_hash: str):
        return self.w3.eth.get_transaction_receipt(tx_hash)

    def __repr__(self) -> str:
        return f"<ChainClient {self.label}>"


@dataclass(frozen=True)
class ClientPair:
    primary: ChainClient
    archive: Optional[ChainClient] = None


def build_client_pair(rpc_url: str, archive_rpc_url: Optional[str] = None) -> ClientPair:
    """Fresh connections for both endpoints."""
    primary = ChainClient.connect(rpc_url, label="primary")
    archive = None
    if archive_rpc_url:
        logger.info("Archive RPC URL configured")
        archive = ChainClient.connect(archive_rpc_url, label="archive")
    return ClientPair(primary=primary, archive=archive)


class ClientHandle:
    """Owns the current ClientPair; reconnects swap in a whole new pair.

    Readers take `current()` once and keep using that pair, so they never
    see a half-built one.
    """

    def __init__(self, pair: Optional[ClientPair] = None):
        self._pair = pair
        self._lock = threading.Lock()

    def current(self) -> Optional[ClientPair]:
        with self._lock:
            return self._pair

    def replace(self, pair: ClientPair) -> Optional[ClientPair]:
        with self._lock:
            old, self._pair = self._pair, pair
        return old


def select_client(pair: ClientPair, current_height: int, chunk_end: int, archive_threshold: int) -> ChainClient:
    """Archive client for chunks older than `archive_threshold`, otherwise primary."""
    if pair.archive is not None and current_height - chunk_end > archive_threshold:
        return pair.archive
    return pair.primary
