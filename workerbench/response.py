import hashlib
import os
import secrets
import tempfile
import uuid
from typing import Dict, Optional

from attrs import asdict, frozen

RANDOM_BYTES_SIZE = 1024 * 10


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


@frozen
class ResponsePayload:
    value: str
    filepath: str
    checksum: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def generate_response(directory: Optional[str] = None) -> ResponsePayload:
    """
    Build one JSON response payload: 10 KiB of random bytes, written to a
    freshly named file in the temp directory, hex encoded, with the SHA-256
    digest of the raw bytes.

    The file is left in place; temp-file accumulation is part of what the
    benchmark measures. Filesystem errors propagate to the caller.
    """
    filepath = os.path.join(
        os.path.abspath(directory or tempfile.gettempdir()), str(uuid.uuid4())
    )

    buffer = secrets.token_bytes(RANDOM_BYTES_SIZE)
    with open(filepath, "wb") as fh:
        fh.write(buffer)
    checksum = sha256_hex(buffer)

    return ResponsePayload(value=buffer.hex(), filepath=filepath, checksum=checksum)
