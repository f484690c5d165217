# civictrack/services/storage.py
import logging
from typing import Iterable, Optional
import requests
from civictrack.core.config import settings

logger = logging.getLogger(__name__)

SUPABASE_URL = settings.supabase_url
SUPABASE_SERVICE_ROLE = settings.supabase_service_role
BUCKET = settings.supabase_bucket

def object_path_from_url(url: str) -> Optional[str]:
    """Map a public object URL back to its path inside the bucket."""
    marker = f"/storage/v1/object/public/{BUCKET}/"
    if marker not in url:
        return None
    return url.split(marker, 1)[1].split("?", 1)[0] or None

def delete_object(url: str) -> bool:
    """Delete one stored image by its public URL. Returns False when nothing was deleted."""
    if not (SUPABASE_URL and SUPABASE_SERVICE_ROLE):
        return False
    path = object_path_from_url(url)
    if not path:
        logger.warning("Not a bucket URL, skipping delete: %s", url)
        return False
    r = requests.delete(
        f"{SUPABASE_URL}/storage/v1/object/{BUCKET}/{path}",
        headers={"Authorization": f"Bearer {SUPABASE_SERVICE_ROLE}"},
        timeout=30,
    )
    r.raise_for_status()
    return True

def delete_objects_safe(urls: Iterable[str]) -> int:
    """Best-effort bulk delete; each failure is logged and the rest continue."""
    deleted = 0
    for url in urls:
        try:
            if delete_object(url):
                deleted += 1
        except Exception:
            logger.error("Failed to delete stored image %s", url, exc_info=True)
    return deleted
