# app/services/storage.py
import base64, logging, uuid
import requests
from app.core.config import settings
from app.core.errors import ServerError

logger = logging.getLogger(__name__)

MAX_FILES = 10
MAX_BYTES = 5 * 1024 * 1024
ALLOWED = {"image/jpeg", "image/png", "image/webp", "image/gif"}

def is_configured() -> bool:
    return bool(settings.supabase_url and settings.supabase_service_role)

def upload_image(data: bytes, content_type: str, path: str) -> str:
    """Uploads to Supabase Storage via REST; returns public URL (bucket must be public).

    Without storage credentials the image is returned inline as a data URL.
    """
    if not is_configured():
        b64 = base64.b64encode(data).decode("utf-8")
        return f"data:{content_type};base64,{b64}"
    base = settings.supabase_url.rstrip("/")
    bucket = settings.supabase_bucket
    url = f"{base}/storage/v1/object/{bucket}/{path}"
    try:
        r = requests.post(url, headers={
            "Authorization": f"Bearer {settings.supabase_service_role}",
            "Content-Type": content_type,
            "x-upsert": "true",
        }, data=data, timeout=30)
        r.raise_for_status()
    except requests.RequestException as e:
        logger.error("upload of %s to bucket %s failed: %s", path, bucket, e)
        raise ServerError("Image upload failed") from e
    logger.info("uploaded %s (%d bytes) to bucket %s", path, len(data), bucket)
    return f"{base}/storage/v1/object/public/{bucket}/{path}"

def storage_kind() -> str:
    return "supabase" if is_configured() else "local"

def make_object_key(issue_id: int, filename: str) -> str:
    ext = (filename.rsplit(".", 1)[-1] if "." in filename else "jpg").lower()
    return f"{issue_id}/{uuid.uuid4().hex}.{ext}"
