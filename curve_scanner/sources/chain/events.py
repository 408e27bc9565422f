from dataclasses import dataclass
from typing import Dict, List, Tuple
from eth_abi import abi
from web3 import Web3
from curve_scanner.contracts.abis import NEW_POOL_COMPONENTS, TRADE_COMPONENTS
import logging

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventSpec:
    name: str
    components: Tuple[Tuple[str, str], ...]

    @property
    def tuple_type(self) -> str:
        return "(" + ",".join(t for _, t in self.components) + ")"

    @property
    def signature(self) -> str:
        return f"{self.name}({self.tuple_type})"

    @property
    def topic(self) -> str:
        return Web3.to_hex(Web3.keccak(text=self.signature))


TRADE_EVENT = EventSpec("Trade", tuple(TRADE_COMPONENTS))
NEW_POOL_EVENT = EventSpec("NewPool", tuple(NEW_POOL_COMPONENTS))


def decode_event_args(spec: EventSpec, raw_log) -> Dict:
    """Decode the single struct argument of `raw_log` into a name → value dict."""
    (values,) = abi.decode([spec.tuple_type], bytes(raw_log["data"]))
    return {name: value for (name, _), value in zip(spec.components, values)}


def encode_event_data(spec: EventSpec, args: Dict) -> bytes:
    """Inverse of `decode_event_args`; used to build logs for replays and tests."""
    values = tuple(args[name] for name, _ in spec.components)
    return abi.encode([spec.tuple_type], [values])


def fetch_event_logs(client, spec: EventSpec, address: str, from_block: int, to_block: int) -> List:
    """All `spec` logs emitted by `address` in [from_block, to_block].

    Errors propagate: a failed fetch fails the whole chunk.
    """
    logs = client.get_logs(address, spec.topic, from_block, to_block)
    log.debug(f"--fetched {len(logs)} {spec.name} logs for blocks {from_block}-{to_block}")
    return list(logs)
