# curve_scanner/main.py
from fastapi import FastAPI
from curve_scanner.api import api
from curve_scanner.storage.db import engine
from sqlalchemy import text
import logging
from curve_scanner.utils.shortname import ShortNameFilter

app = FastAPI(title="curve-scanner")

logging.basicConfig(
    level=logging.INFO,
    format="[%(levelname)s] %(shortname)s: %(message)s",
)
for _handler in logging.getLogger().handlers:
    _handler.addFilter(ShortNameFilter())
log = logging.getLogger(__name__)

app.include_router(api.router, prefix="/api")

@app.on_event("startup")
def check_db_connection():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            log.info("✅ Database connected.")
    except Exception as e:
        log.error(f"❌ DB connection failed: {e}")
