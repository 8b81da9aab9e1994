# storage.py
import io
import logging
import os
import time
import uuid

from google.cloud import storage as gcs
from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "image/png",
    "image/jpeg",
    "image/webp",
    "image/gif",
}

AVATAR_MAX_WIDTH = 400
JPEG_QUALITY = 70


def compress_image(stream, max_width: int = AVATAR_MAX_WIDTH) -> bytes:
    """
    Shrink an uploaded image to `max_width` (keeping aspect ratio) and re-encode
    it as JPEG at 70% quality. Narrower images are scaled up to `max_width`, so
    every avatar comes out the same width.

    Raises ValueError if the stream is not a readable image.
    """
    try:
        img = Image.open(stream)
        img = ImageOps.exif_transpose(img)
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Not a readable image: {e}") from e

    scale = max_width / img.width
    size = (max_width, max(1, round(img.height * scale)))
    img = img.convert("RGB").resize(size, Image.LANCZOS)

    out = io.BytesIO()
    img.save(out, format="JPEG", quality=JPEG_QUALITY)
    return out.getvalue()


def upload_image(data: bytes, folder: str = "misc", content_type: str = "image/jpeg") -> str:
    """
    Uploads image bytes to a GCS bucket and returns a browser-loadable URL.
    Requires env var UPLOAD_BUCKET. Uses default credentials on App Engine.

    Returns: public HTTPS URL (storage.googleapis.com/<bucket>/<object>)
    Raises: ValueError/RuntimeError on misconfig/unsupported type
    """
    if not data:
        raise ValueError("No file provided.")
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise ValueError(f"Unsupported image type: {content_type}")

    bucket_name = os.environ.get("UPLOAD_BUCKET")
    if not bucket_name:
        raise RuntimeError("UPLOAD_BUCKET env var is not set.")

    obj_name = f"{folder}/{int(time.time())}-{uuid.uuid4().hex}.jpg"

    client = gcs.Client()
    bucket = client.bucket(bucket_name)
    blob = bucket.blob(obj_name)
    blob.upload_from_string(data, content_type=content_type)
    logger.info("Uploaded %s bytes to gs://%s/%s", len(data), bucket_name, obj_name)

    return f"https://storage.googleapis.com/{bucket_name}/{obj_name}"
