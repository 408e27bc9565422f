from dataclasses import dataclass
from enum import Enum
from curve_scanner.scanner.errors import ScannerFatalError
import logging

log = logging.getLogger(__name__)


class ControllerState(Enum):
    RUNNING = "running"
    BACKOFF = "backoff"
    STOPPED = "stopped"


@dataclass(frozen=True)
class ReconnectPolicy:
    base_delay_ms: int = 5_000
    max_attempts: int = 10
    cap_exponent: int = 5          # delay tops out at base * 2**5

    def delay_ms(self, attempt: int) -> int:
        """Delay before reconnect attempt `attempt` (1-based)."""
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")
        return self.base_delay_ms * 2 ** min(attempt - 1, self.cap_exponent)

    def exhausted(self, attempt: int) -> bool:
        return attempt > self.max_attempts


class ReconnectController:
    """RUNNING → BACKOFF on failure, back to RUNNING after a reconnect,
    STOPPED on explicit stop or once the attempt budget is spent."""

    def __init__(self, policy: ReconnectPolicy):
        self.policy = policy
        self.attempts = 0
        self.state = ControllerState.RUNNING

    def on_success(self) -> None:
        if self.attempts:
            log.info(f"[reconnect] recovered after {self.attempts} attempt(s)")
        self.attempts = 0
        self.state = ControllerState.RUNNING

    def on_failure(self, error: BaseException) -> int:
        """Register a failed iteration; returns the delay (ms) before reconnecting.

        Raises ScannerFatalError once the attempts exceed the policy budget.
        """
        self.attempts += 1
        if self.policy.exhausted(self.attempts):
            self.state = ControllerState.STOPPED
            log.error(f"Max reconnection attempts reached ({self.policy.max_attempts}). Stopping scanner.")
            raise ScannerFatalError(
                f"Scanner halted after {self.policy.max_attempts} reconnection attempts: {error}",
                attempts=self.attempts,
                last_error=error,
            ) from error

        self.state = ControllerState.BACKOFF
        delay = self.policy.delay_ms(self.attempts)
        log.warning(f"Reconnection attempt {self.attempts}/{self.policy.max_attempts} in {delay} ms")
        return delay

    def reconnected(self) -> None:
        if self.state is ControllerState.BACKOFF:
            self.state = ControllerState.RUNNING

    def stop(self) -> None:
        self.state = ControllerState.STOPPED
