from datetime import datetime, timezone
from typing import Callable, Optional
import threading
import time
import requests
from sqlalchemy import select, update
from curve_scanner.config.settings import WebhookConfig
from curve_scanner.storage.models.pool import Pool
from curve_scanner.storage.models.trade import Trade
import logging

log = logging.getLogger(__name__)

EVENT_MODELS = (("pool", Pool), ("trade", Trade))


class WebhookSender:
    """Pushes unsent pool/trade rows to a webhook and flips `webhook_sent`.

    Only ever writes `webhook_sent`, and only after a 2xx response.
    """

    def __init__(self, config: WebhookConfig, session_factory,
                 sleep: Optional[Callable[[float], None]] = None):
        self.config = config
        self.session_factory = session_factory
        self._stop_event = threading.Event()
        self._sleep = sleep or time.sleep

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.config.auth_token:
            headers["Authorization"] = f"Bearer {self.config.auth_token}"
        return headers

    def send_event(self, event_type: str, event_data: dict) -> bool:
        """POST one event, retrying up to `retry_attempts` extra times."""
        body = {
            "eventType": event_type,
            "eventData": event_data,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        total = self.config.retry_attempts + 1
        for attempt in range(1, total + 1):
            try:
                resp = requests.post(
                    self.config.url,
                    json=body,
                    headers=self._headers(),
                    timeout=self.config.timeout_ms / 1000,
                )
                if resp.ok:
                    log.info(f"Sent {event_type} event (status {resp.status_code}, attempt {attempt})")
                    return True
                log.warning(
                    f"Failed to send {event_type} event: {resp.status_code} "
                    f"{resp.text[:200]} (attempt {attempt}/{total})"
                )
            except requests.RequestException as exc:
                log.warning(f"Error sending {event_type} event: {exc} (attempt {attempt}/{total})")

            if attempt < total:
                self._sleep(self.config.retry_delay_ms / 1000)

        log.error(f"Failed to send {event_type} event after {total} attempts")
        return False

    def dispatch_pending(self) -> dict:
        """One pass over unsent pools, then trades, oldest first.

        Returns per-type counts of delivered rows.
        """
        sent = {"pool": 0, "trade": 0}
        if not self.config.url:
            log.debug("Webhook URL not configured, skipping")
            return sent

        for event_type, model in EVENT_MODELS:
            with self.session_factory() as db:
                rows = db.execute(
                    select(model).where(model.webhook_sent.is_(False)).order_by(model.created_at, model.id)
                ).scalars().all()
                if rows:
                    log.info(f"Found {len(rows)} new {event_type} events to send")

                for row in rows:
                    if not self.send_event(event_type, row.to_dict()):
                        continue
                    db.execute(
                        update(model)
                        .where(model.id == row.id)
                        .values(webhook_sent=True)
                        .execution_options(synchronize_session=False)
                    )
                    db.commit()
                    sent[event_type] += 1
        return sent

    def run_forever(self) -> None:
        log.info(f"Starting webhook sender (poll {self.config.poll_interval_ms} ms)")
        while not self._stop_event.is_set():
            try:
                self.dispatch_pending()
            except Exception:
                log.exception("💥 Error in webhook sender loop")
            self._stop_event.wait(self.config.poll_interval_ms / 1000)

    def stop(self) -> None:
        log.info("Stopping webhook sender")
        self._stop_event.set()
