import hashlib
import json
from typing import Any, Optional


def generate_etag(data: Any) -> str:
    """
    Quoted MD5 of the compact JSON encoding of `data`.

    Row order is part of the content: the same rows in another order hash
    differently. Not a security primitive.
    """
    encoded = json.dumps(data, separators=(",", ":"), ensure_ascii=False, default=str)
    return f'"{hashlib.md5(encoded.encode("utf-8")).hexdigest()}"'


def etag_matches(client_etag: Optional[str], server_etag: str) -> bool:
    """True when the client copy is current and a 304 can be sent."""
    if not client_etag:
        return False
    return client_etag == server_etag
