"""Image preprocessing before upload and model analysis."""

import io
import logging

from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)


def optimize_image(
    data: bytes,
    media_type: str,
    max_dimension: int = 1500,
    quality: int = 80,
) -> tuple[bytes, str]:
    """Downscale an image to fit max_dimension and re-encode it as JPEG.

    Args:
        data: Raw image bytes
        media_type: MIME type of data
        max_dimension: Longest allowed side in pixels (aspect ratio is kept)
        quality: JPEG quality

    Returns:
        (bytes, media_type) of the optimized image, or the input unchanged
        when it cannot be decoded
    """
    try:
        with Image.open(io.BytesIO(data)) as original:
            img = ImageOps.exif_transpose(original)
            if img.mode != "RGB":
                img = img.convert("RGB")
            img.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)

            buffer = io.BytesIO()
            img.save(buffer, format="JPEG", quality=quality, optimize=True)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        logger.warning(f"Error optimizing image, using original: {e}")
        return data, media_type

    optimized = buffer.getvalue()
    logger.info(f"Image optimized: {len(data) // 1024}KB -> {len(optimized) // 1024}KB")
    return optimized, "image/jpeg"
