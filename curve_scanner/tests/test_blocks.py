from curve_scanner.sources.chain.blocks import compute_scan_range, walk_block_ranges


def test_safe_range_single_chunk():
    assert compute_scan_range(1000, 12, 500) == (501, 988)
    assert list(walk_block_ranges(501, 988, step=1000)) == [(501, 988)]


def test_no_range_when_chain_has_not_advanced():
    assert compute_scan_range(1000, 12, 988) is None
    assert compute_scan_range(1000, 12, 995) is None


def test_chunks_are_contiguous_and_bounded():
    chunks = list(walk_block_ranges(1, 2500, step=1000))
    assert chunks == [(1, 1000), (1001, 2000), (2001, 2500)]


def test_single_block_range():
    assert list(walk_block_ranges(7, 7, step=1000)) == [(7, 7)]
