from sqlalchemy import select
from curve_scanner.scanner.state import MAX_ERROR_MESSAGE, ScannerStateStore, reset_state
from curve_scanner.storage.models.scanner_state import ScannerState


def _store(session_factory, name="bsc-test"):
    return ScannerStateStore(session_factory, 56, name)


def test_load_or_create_is_idempotent(session_factory):
    store = _store(session_factory)
    first = store.load_or_create()
    store.set_last_processed(42)
    second = store.load_or_create()

    assert first.id == second.id
    assert second.last_processed_block == 42
    with session_factory() as db:
        assert len(db.execute(select(ScannerState)).scalars().all()) == 1


def test_streams_are_isolated_by_name(session_factory):
    a, b = _store(session_factory, "a"), _store(session_factory, "b")
    a.load_or_create()
    b.load_or_create()
    a.set_last_processed(10)
    assert a.get().last_processed_block == 10
    assert b.get().last_processed_block == 0


def test_commit_chunk_only_moves_forward(session_factory):
    store = _store(session_factory)
    store.load_or_create()

    with session_factory() as db:
        assert store.commit_chunk(db, 100, blocks=100, events=3) is True
        db.commit()
    with session_factory() as db:
        assert store.commit_chunk(db, 100, blocks=100, events=3) is False
        assert store.commit_chunk(db, 50, blocks=50, events=1) is False
        db.commit()

    state = store.get()
    assert state.last_processed_block == 100
    assert state.total_blocks_processed == 100
    assert state.total_events_processed == 3


def test_commit_chunk_rolls_back_with_the_chunk(session_factory):
    store = _store(session_factory)
    store.load_or_create()
    with session_factory() as db:
        store.commit_chunk(db, 100, blocks=100, events=0)
        db.rollback()
    assert store.get().last_processed_block == 0


def test_error_message_is_truncated(session_factory):
    store = _store(session_factory)
    store.load_or_create()
    store.record_error("x" * (MAX_ERROR_MESSAGE + 500))
    state = store.get()
    assert len(state.last_error_message) == MAX_ERROR_MESSAGE
    assert state.last_error_at is not None


def test_reset_state_zeroes_progress(session_factory):
    store = _store(session_factory)
    store.load_or_create()
    store.update(last_processed_block=900, total_blocks_processed=900, total_events_processed=12)
    store.mark_started()
    store.record_success()
    store.record_error("boom")

    with session_factory() as db:
        state = db.execute(select(ScannerState)).scalar_one()
        reset_state(db, state)
        db.commit()

    state = store.get()
    assert state.last_processed_block == 0
    assert state.is_running is False
    assert state.total_blocks_processed == 0
    assert state.total_events_processed == 0
    assert state.last_run_at is None
    assert state.last_success_at is None
    assert state.last_error_at is None
    assert state.last_error_message is None
