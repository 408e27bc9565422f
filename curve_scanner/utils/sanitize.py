# curve_scanner/utils/sanitize.py
from datetime import datetime
from decimal import Decimal
from web3.datastructures import AttributeDict
from hexbytes import HexBytes

# JS clients lose precision above this
MAX_SAFE_INT = 2**53 - 1


def to_hex(value) -> str:
    """0x-prefixed lowercase hex for bytes / HexBytes / str."""
    if isinstance(value, (bytes, bytearray, HexBytes)):
        h = bytes(value).hex()
        return "0x" + h
    value = str(value).lower()
    return value if value.startswith("0x") else "0x" + value


def sanitize_log(log):
    """Convert Web3 log to JSON-safe dict."""
    out = {}
    for k, v in dict(log).items():
        if isinstance(v, (bytes, bytearray, HexBytes)):
            out[k] = to_hex(v)
        elif isinstance(v, AttributeDict):
            out[k] = dict(v)
        elif isinstance(v, (list, tuple)):
            out[k] = [to_hex(i) if isinstance(i, (bytes, bytearray, HexBytes)) else i for i in v]
        else:
            out[k] = v
    return out


def sanitize_row(row) -> dict:
    """Convert an ORM row to a JSON-safe dict.

    Wide integers and decimals go out as strings, datetimes as ISO-8601.
    """
    out = {}
    for col in row.__table__.columns:
        value = getattr(row, col.key)
        if isinstance(value, bool) or value is None:
            pass
        elif isinstance(value, int) and abs(value) > MAX_SAFE_INT:
            value = str(value)
        elif isinstance(value, Decimal):
            value = str(value)
        elif isinstance(value, datetime):
            value = value.isoformat()
        out[col.key] = value
    return out
