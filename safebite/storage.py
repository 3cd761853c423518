# safebite/storage.py
import os
import time
from sqlmodel import Session, select
from dotenv import load_dotenv
from .models import ImageStore

load_dotenv()

PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8080").rstrip("/")

def object_name_for(user_id: str, filename: str, timestamp_ms: int = None) -> str:
    """scans/<userId>/<epoch millis>_<original filename>"""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    safe_name = os.path.basename((filename or "").replace("\\", "/")) or "upload"
    return f"scans/{user_id}/{timestamp_ms}_{safe_name}"

def public_url(object_name: str) -> str:
    return f"{PUBLIC_BASE_URL}/api/image/{object_name}"

def save_scan_image(session: Session, user_id: str, filename: str, data: bytes, mime_type: str = "image/jpeg") -> str:
    """Persists the image and returns its public URL."""
    object_name = object_name_for(user_id, filename)
    blob = ImageStore(object_name=object_name, data=data, mime_type=mime_type or "image/jpeg")
    session.add(blob)
    session.commit()
    print(f"   🗂️ Stored {len(data)}b as {object_name}")
    return public_url(object_name)

def load_image(session: Session, object_name: str):
    return session.exec(select(ImageStore).where(ImageStore.object_name == object_name)).first()
