import base64
import io
import logging
from pathlib import Path

from PIL import Image, UnidentifiedImageError


logger = logging.getLogger(__name__)


IMAGE_FORMATS = (
    "bmp", "dds", "gif", "hdr", "ico", "jpeg", "jpg", "exr", "png", "pnm", "qoi", "tga", "tiff", "webp",
)

# Ollama accepts these as-is; everything else is re-encoded as PNG.
_PASSTHROUGH = {".png", ".jpg", ".jpeg"}


def is_image_path(path: str | Path) -> bool:
    return Path(path).suffix.lower().lstrip(".") in IMAGE_FORMATS


def encode_image(path: str | Path) -> str:
    """
    Return the base64 payload Ollama expects for an image attachment.

    Raises OSError if the file cannot be read and ValueError if it is not an image.
    """
    p = Path(path)
    if p.suffix.lower() in _PASSTHROUGH:
        raw = p.read_bytes()
        try:
            with Image.open(io.BytesIO(raw)) as img:
                img.verify()
        except (UnidentifiedImageError, SyntaxError) as exc:
            raise ValueError(f"Not a supported image: {p.name}") from exc
        logger.debug("read %s to %d bytes of image data", p.name, len(raw))
        return base64.b64encode(raw).decode("ascii")

    try:
        with Image.open(p) as img:
            logger.debug("got %s image, converting to png", img.format)
            if img.mode not in ("RGB", "RGBA", "L", "LA", "P"):
                img = img.convert("RGBA")
            buf = io.BytesIO()
            img.save(buf, format="PNG")
    except UnidentifiedImageError as exc:
        raise ValueError(f"Not a supported image: {p.name}") from exc
    data = base64.b64encode(buf.getvalue()).decode("ascii")
    logger.debug("converted %s to %d bytes of base64", p.name, len(data))
    return data


def encode_images(paths: list[str]) -> list[str]:
    return [encode_image(p) for p in (paths or [])]
