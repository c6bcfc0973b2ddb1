"""Content digests for archive files."""

import hashlib
from pathlib import Path

_CHUNK_SIZE = 1024 * 1024


def compute_file_hash(path: Path) -> str:
    """Compute the SHA-256 hex digest of a file, streamed in 1 MiB chunks."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def compute_metadata_fingerprint(*parts) -> str:
    """Stable digest of descriptive fields, for sources that expose no file bytes."""
    joined = "|".join(str(p) for p in parts if p not in (None, "", 0))
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()[:32]
