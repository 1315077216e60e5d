"""
Image Loader

Turns an uploaded file into an ImagePayload: validates the declared type,
produces the base64 body Gemini expects and registers a preview handle
the page can render.
"""

import base64
import io
import logging
from typing import Dict, Optional, Tuple
from uuid import uuid4

from PIL import Image, UnidentifiedImageError

from blackbee.errors import EncodingFailed, UnsupportedType
from blackbee.models import ImagePayload

logger = logging.getLogger(__name__)

PREVIEW_ROUTE = "/preview"


class PreviewStore:
    """
    In-memory registry of renderable image handles.

    Every payload owns one token. Owners must release their token once the
    payload is superseded, otherwise the store grows with every upload.
    """

    def __init__(self):
        self._items: Dict[str, Tuple[bytes, str]] = {}

    def create(self, data: bytes, content_type: str) -> str:
        token = uuid4().hex
        self._items[token] = (data, content_type)
        return token

    def get(self, token: str) -> Optional[Tuple[bytes, str]]:
        return self._items.get(token)

    def release(self, token: Optional[str]) -> None:
        if token and self._items.pop(token, None) is not None:
            logger.debug(f"Released preview {token}")

    def __len__(self) -> int:
        return len(self._items)


def encode_image(data: bytes, content_type: str) -> str:
    """
    Encode bytes as a data URL and return only the base64 body.

    Raises:
        EncodingFailed: If the input is not bytes-like or cannot be encoded
    """
    try:
        b64 = base64.b64encode(data).decode("ascii")
        data_url = f"data:{content_type};base64,{b64}"
        # Remove the data URL prefix (e.g., "data:image/jpeg;base64,")
        return data_url.split(",", 1)[1]
    except (TypeError, ValueError) as e:
        raise EncodingFailed(f"Failed to encode image: {str(e)}")


def read_dimensions(data: bytes) -> Tuple[Optional[int], Optional[int]]:
    """Read width/height from the image header; (None, None) if Pillow can't parse it."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.size
    except (UnidentifiedImageError, OSError) as e:
        logger.debug(f"Could not read image dimensions: {str(e)}")
        return None, None


def load_image(data: bytes, content_type: Optional[str], filename: str,
               previews: PreviewStore) -> ImagePayload:
    """
    Build an ImagePayload from an uploaded file.

    Args:
        data: Full file content
        content_type: MIME type declared by the browser
        filename: Original file name
        previews: Store that will own the preview handle

    Returns:
        ImagePayload with encoded data and a live preview URL

    Raises:
        UnsupportedType: If content_type does not start with "image/"
        EncodingFailed: If the file is empty or cannot be encoded
    """
    if not content_type or not content_type.startswith("image/"):
        raise UnsupportedType(f"Invalid file type: {content_type}. Expected an image file.")

    if not isinstance(data, (bytes, bytearray)):
        raise EncodingFailed(f"Expected bytes, got {type(data).__name__}")
    if len(data) == 0:
        raise EncodingFailed(f"Empty file uploaded: {filename}")

    data = bytes(data)
    encoded = encode_image(data, content_type)
    width, height = read_dimensions(data)

    token = previews.create(data, content_type)
    logger.info(f"Loaded {filename} ({content_type}, {len(data)} bytes)")

    return ImagePayload(
        raw_bytes=data,
        filename=filename,
        content_type=content_type,
        encoded_data=encoded,
        preview_token=token,
        preview_url=f"{PREVIEW_ROUTE}/{token}",
        width=width,
        height=height,
    )
