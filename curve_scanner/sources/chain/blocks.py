from typing import Iterator, Optional, Tuple


def safe_block(latest_block: int, confirmations: int) -> int:
    """Highest block considered final enough to read."""
    return latest_block - confirmations


def compute_scan_range(latest_block: int, confirmations: int, last_processed: int) -> Optional[Tuple[int, int]]:
    """Inclusive (start, end) still to scan, or None when the chain hasn't advanced."""
    end = safe_block(latest_block, confirmations)
    if end <= last_processed:
        return None
    return last_processed + 1, end


def walk_block_ranges(start: int, end: int, step: int = 1000) -> Iterator[Tuple[int, int]]:
    """Yield inclusive block ranges of at most `step` blocks covering [start, end]."""
    for i in range(start, end + 1, step):
        yield i, min(i + step - 1, end)
