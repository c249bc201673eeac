from __future__ import annotations
import hashlib
from audiotools.utils.canonical_json import canonical_dumps


def sha256_hex_canonical_json(obj) -> str:
    """SHA256 of the canonical JSON form of ``obj``."""
    return hashlib.sha256(canonical_dumps(obj).encode("utf-8")).hexdigest()


def sha256_hex_file(path: str, chunk_size: int = 1 << 16) -> str:
    """SHA256 of a file's bytes, read in chunks."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            h.update(chunk)
    return h.hexdigest()
