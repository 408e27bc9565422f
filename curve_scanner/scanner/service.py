from typing import Callable, Optional
import threading
from curve_scanner.config.settings import ScannerConfig
from curve_scanner.scanner.errors import ScannerFatalError
from curve_scanner.scanner.orchestrator import RangeScanner, ScanResult, ScanStatus
from curve_scanner.scanner.reconnect import ControllerState, ReconnectController, ReconnectPolicy
from curve_scanner.scanner.state import ScannerStateStore
from curve_scanner.sources.chain.client import ClientHandle, ClientPair, build_client_pair
import logging

log = logging.getLogger(__name__)


class ScannerService:
    """Long-running scan loop for one (chain, scanner name) stream.

    Parameters
    ----------
    config : ScannerConfig
        Endpoints, contracts and scan tuning.
    session_factory : callable
        Returns a context-managed SQLAlchemy session.
    client_factory : callable, default build_client_pair
        `(rpc_url, archive_rpc_url) -> ClientPair`; called on the first iteration and
        on every reconnect.
    sleep : callable | None
        `sleep(ms)`; defaults to a wait that `stop()` interrupts.
    """

    def __init__(
        self,
        config: ScannerConfig,
        session_factory,
        client_factory: Callable[[str, Optional[str]], ClientPair] = build_client_pair,
        sleep: Optional[Callable[[int], None]] = None,
    ):
        self.config = config
        self.client_factory = client_factory
        # connected lazily inside the guarded loop
        self.clients = ClientHandle(None)
        self.state = ScannerStateStore(session_factory, config.chain_id, config.scanner_name)
        self.scanner = RangeScanner(config, self.clients, session_factory, self.state)
        self.controller = ReconnectController(
            ReconnectPolicy(base_delay_ms=config.reconnect_delay_ms, max_attempts=config.max_reconnect_attempts)
        )
        self._stop_event = threading.Event()
        self._sleep = sleep or self._interruptible_sleep
        self._state_loaded = False
        self._frontier_ready = False
        self.is_running = False

    def _interruptible_sleep(self, ms: int) -> None:
        self._stop_event.wait(ms / 1000)

    # ── lifecycle ───────────────────────────────────────────────────────
    def start(self) -> None:
        """Scan until `stop()` or a fatal error.

        Connecting, loading state and every telemetry write happen inside the
        guarded iteration. `is_running=false` is persisted however the loop ends.
        """
        if self.is_running:
            log.warning("Scanner is already running")
            return

        self.is_running = True
        self._state_loaded = False
        self._frontier_ready = False
        self._stop_event.clear()
        self.controller.state = ControllerState.RUNNING
        log.info(
            f"🚀 Starting blockchain scanner chain={self.config.chain_id} name={self.config.scanner_name} "
            f"curve={self.config.trading_curve_address} factory={self.config.pool_factory_address}"
        )
        try:
            self.scan_loop()
        finally:
            self.is_running = False
            try:
                self.state.mark_stopped()
            except Exception as exc:
                log.error(f"Failed to persist stopped state: {exc}")
            log.info("Scanner stopped")

    def _connect(self) -> None:
        self.clients.replace(self.client_factory(self.config.rpc_url, self.config.archive_rpc_url))

    def _prepare(self) -> None:
        """Setup steps that have not succeeded yet: state row, clients, frontier."""
        if not self._state_loaded:
            self.scanner.load_state()
            self.state.mark_started()
            self._state_loaded = True
        if self.clients.current() is None:
            self._connect()
        if not self._frontier_ready:
            if self.scanner.last_processed_block == 0:
                self._init_frontier()
            self._frontier_ready = True

    def _init_frontier(self) -> None:
        if self.config.start_block:
            frontier = self.config.start_block - 1
        else:
            frontier = self.clients.current().primary.get_block_number()
        self.scanner.last_processed_block = frontier
        self.state.set_last_processed(frontier)
        log.info(f"Starting from block {frontier + 1}")

    def stop(self) -> None:
        """Request a cooperative stop; the in-flight chunk still commits."""
        log.info("Stopping blockchain scanner")
        self._stop_event.set()
        self.controller.stop()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    # ── loop ────────────────────────────────────────────────────────────
    def scan_loop(self) -> None:
        while not self.stop_requested:
            result = self.run_iteration()
            if self.stop_requested:
                break
            if result.status is ScanStatus.FAILED:
                self.handle_failure(result.error)
            self._sleep(self.config.poll_interval_ms)

    def run_iteration(self) -> ScanResult:
        """One guarded pass; any error comes back as a FAILED result."""
        try:
            self._prepare()
            result = self.scanner.run_once(stop_requested=lambda: self.stop_requested)
            if result.ok:
                self.state.record_success()
                self.controller.on_success()
                return result
        except Exception as exc:
            log.error(f"Error in scan loop: {exc}", exc_info=True)
            result = ScanResult(ScanStatus.FAILED, self.scanner.last_processed_block, error=exc)
        else:
            log.error(f"Error in scan loop: {result.error}")
        self._record_error(str(result.error))
        return result

    def _record_error(self, message: str) -> None:
        try:
            self.state.record_error(message)
        except Exception as exc:
            log.warning(f"Could not record scanner error ({exc}); original error: {message}")

    def handle_failure(self, error: BaseException) -> None:
        """Back off, then swap in freshly built RPC clients.

        Raises ScannerFatalError when the attempt budget is exhausted.
        """
        try:
            delay = self.controller.on_failure(error)
        except ScannerFatalError as fatal:
            self._record_error(str(fatal))
            self._stop_event.set()
            raise

        self._sleep(delay)
        if self.stop_requested:
            return
        try:
            self._connect()
            self.controller.reconnected()
            log.info("Provider reinitialized successfully")
        except Exception as exc:
            log.error(f"Failed to reinitialize provider: {exc}")
            self._record_error(f"Reconnect attempt {self.controller.attempts} failed: {exc}")

    def get_status(self) -> dict:
        return {
            "is_running": self.is_running,
            "chain_id": self.config.chain_id,
            "last_processed_block": self.scanner.last_processed_block,
            "trading_curve_address": self.config.trading_curve_address,
            "pool_factory_address": self.config.pool_factory_address,
        }
