# safebite/uploads.py
import os
import tempfile
from contextlib import contextmanager
from typing import NamedTuple
from dotenv import load_dotenv

load_dotenv()

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")

class ScanRequest(NamedTuple):
    user_id: str
    image_path: str
    mime_type: str
    filename: str

    def read_bytes(self) -> bytes:
        with open(self.image_path, "rb") as f:
            return f.read()

@contextmanager
def staged_upload(user_id: str, filename: str, mime_type: str, data: bytes):
    """
    Writes the uploaded bytes to a temp file under UPLOAD_DIR and removes it
    when the block exits, whatever happened inside it.
    """
    os.makedirs(UPLOAD_DIR, exist_ok=True)
    _, ext = os.path.splitext(filename or "")
    fd, path = tempfile.mkstemp(suffix=ext, dir=UPLOAD_DIR)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        yield ScanRequest(user_id=user_id, image_path=path, mime_type=mime_type or "image/jpeg", filename=filename)
    finally:
        if os.path.exists(path):
            os.remove(path)
