from celery import shared_task
from redis import Redis
from redlock import Redlock
from curve_scanner.config.settings import REDIS_URL, WebhookConfig
from curve_scanner.storage.db import WorkerSessionLocal
from curve_scanner.webhooks.sender import WebhookSender
import logging
log = logging.getLogger(__name__)

# ── global Redis lock (only ONE dispatcher may deliver at a time) ───────
GLOBAL_LOCK_MS = 5 * 60 * 1000    # 300 000 ms

_locker = None


def get_locker() -> Redlock:
    global _locker
    if _locker is None:
        _locker = Redlock([Redis.from_url(REDIS_URL)])
    return _locker


@shared_task(name="dispatch_webhooks", queue="dispatch", bind=True)
def dispatch_webhooks(self):
    log.info("🔄  Starting webhook dispatch…")

    locker = get_locker()
    lock = locker.lock("webhook_dispatch_lock", GLOBAL_LOCK_MS)
    if not lock:
        log.info("🔒 Another dispatcher is running; skipping.")
        return {"skipped": True}

    try:
        sender = WebhookSender(WebhookConfig.from_env(), WorkerSessionLocal)
        sent = sender.dispatch_pending()
        log.info(f"✅ Dispatched {sent['pool']} pools, {sent['trade']} trades")
        return sent
    finally:
        locker.unlock(lock)
