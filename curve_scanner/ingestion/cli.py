import logging
import signal
import sys
import typer
from sqlalchemy import select
from curve_scanner.config.settings import ScannerConfig, WebhookConfig
from curve_scanner.scanner.errors import ScannerFatalError
from curve_scanner.scanner.service import ScannerService
from curve_scanner.scanner.state import reset_state
from curve_scanner.storage.db import WorkerSessionLocal as SessionLocal, worker_engine
from curve_scanner.storage.db_utils import init_db
from curve_scanner.storage.models.scanner_state import ScannerState
from curve_scanner.utils.shortname import ShortNameFilter
from curve_scanner.webhooks.sender import WebhookSender

log = logging.getLogger(__name__)

app = typer.Typer(help="On-chain pool/trade event scanner")


@app.callback()
def _configure_logging(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(shortname)s: %(message)s",
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(ShortNameFilter())


def _install_shutdown(stop) -> None:
    def _handler(signum, frame):
        log.info(f"[cli] signal {signum} received, shutting down…")
        stop()
    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


@app.command("scan")
def scan(chain: str = typer.Option("bsc", help="Chain preset to scan, e.g. bsc")):
    """Run the blockchain scanner until stopped (long running)."""
    try:
        config = ScannerConfig.from_env(chain)
    except ValueError as e:
        log.error(f"[cli] {e}")
        raise typer.Exit(code=2)

    service = ScannerService(config, SessionLocal)
    _install_shutdown(service.stop)
    try:
        service.start()
    except ScannerFatalError:
        log.error("[cli] Fatal error in scanner", exc_info=True)
        raise typer.Exit(code=1)
    finally:
        SessionLocal.remove()


@app.command("send-webhooks")
def send_webhooks():
    """Run the webhook sender loop (long running)."""
    sender = WebhookSender(WebhookConfig.from_env(), SessionLocal)
    _install_shutdown(sender.stop)
    sender.run_forever()


@app.command("check-state")
def check_state(reset: bool = typer.Option(False, "--reset", help="Reset all scanner states to initial values")):
    """Print every scanner state; optionally reset them."""
    with SessionLocal() as db:
        states = db.execute(select(ScannerState).order_by(ScannerState.id)).scalars().all()
        if not states:
            typer.echo("No scanner states found in database")
            return

        typer.echo(f"Found {len(states)} scanner state(s):\n")
        for s in states:
            typer.echo(f"Scanner: {s.scanner_name}")
            typer.echo(f"  Chain ID: {s.chain_id}")
            typer.echo(f"  Last Processed Block: {s.last_processed_block}")
            typer.echo(f"  Is Running: {s.is_running}")
            typer.echo(f"  Total Blocks Processed: {s.total_blocks_processed}")
            typer.echo(f"  Total Events Processed: {s.total_events_processed}")
            typer.echo(f"  Last Run At: {s.last_run_at or 'Never'}")
            typer.echo(f"  Last Success At: {s.last_success_at or 'Never'}")
            typer.echo(f"  Last Error At: {s.last_error_at or 'Never'}")
            if s.last_error_message:
                typer.echo(f"  Last Error Message: {s.last_error_message}")
            typer.echo("")

        if not reset:
            typer.echo("Run with --reset to reset all scanner states")
            return

        for s in states:
            reset_state(db, s)
            typer.echo(f"Reset scanner state for {s.scanner_name}")
        db.commit()
        typer.echo("All scanner states have been reset to initial values")


@app.command("init-db")
def init_db_command():
    """Create missing tables."""
    created = init_db(worker_engine)
    typer.echo(f"Created: {', '.join(created)}" if created else "All tables already exist")


def main():
    app()


if __name__ == "__main__":
    sys.exit(main())
