"""
Image processing for uploaded content images.
Validates the file signature, converts to WebP and derives the mobile variant
before anything is sent to object storage.
"""
import io
import logging
from typing import Optional, Tuple
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

# WebP conversion settings
DEFAULT_WEBP_QUALITY = 85  # Balance between quality and file size (0-100)
DEFAULT_WEBP_METHOD = 6    # Compression method (0-6, higher = better compression but slower)
MAX_DIMENSION = 3840       # Maximum width or height before downscaling

# Leading bytes of the accepted image formats
IMAGE_SIGNATURES = {
    "image/jpeg": b"\xff\xd8\xff",
    "image/png": b"\x89PNG",
    "image/gif": b"GIF",
}


def has_image_signature(data: bytes) -> bool:
    """
    Check the file signature (magic bytes) of an upload.
    Accepts JPEG, PNG, GIF and WebP (RIFF....WEBP).
    """
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return True
    return any(data.startswith(signature) for signature in IMAGE_SIGNATURES.values())


def _normalize_mode(image: Image.Image) -> Image.Image:
    # WebP supports transparency, so keep alpha where the source has it
    if image.mode == 'P':
        return image.convert('RGBA')
    if image.mode in ('RGB', 'RGBA', 'LA'):
        return image
    if image.mode not in ('CMYK', 'L'):
        logger.warning(f"Unusual image mode '{image.mode}', converting to RGB")
    return image.convert('RGB')


def _encode_webp(image: Image.Image, quality: int, method: int) -> bytes:
    buffer = io.BytesIO()
    save_kwargs = {
        'format': 'WEBP',
        'quality': quality,
        'method': method,
    }
    if quality == 100:
        save_kwargs['lossless'] = True
    image.save(buffer, **save_kwargs)
    return buffer.getvalue()


def _scale_to_fit(image: Image.Image, max_dimension: int) -> Image.Image:
    width, height = image.size
    if width <= max_dimension and height <= max_dimension:
        return image

    if width > height:
        new_width = max_dimension
        new_height = int(height * (max_dimension / width))
    else:
        new_height = max_dimension
        new_width = int(width * (max_dimension / height))

    logger.info(
        f"Downscaling image from {width}x{height} to {new_width}x{new_height} "
        f"(max dimension: {max_dimension})"
    )
    return image.resize((new_width, new_height), Image.Resampling.LANCZOS)


def convert_to_webp(
    image_bytes: bytes,
    quality: int = DEFAULT_WEBP_QUALITY,
    method: int = DEFAULT_WEBP_METHOD,
    max_dimension: Optional[int] = MAX_DIMENSION,
    skip_if_webp: bool = True
) -> Tuple[bytes, bool]:
    """
    Convert image bytes to WebP format to reduce file size.

    Args:
        image_bytes: Original image file bytes
        quality: WebP quality (0-100, default: 85)
        method: WebP compression method (0-6, default: 6)
        max_dimension: Maximum width or height before downscaling (None to disable)
        skip_if_webp: If True, return original bytes if already WebP format

    Returns:
        Tuple[bytes, bool]:
            - Converted image bytes (or original if skipped/failed)
            - Whether conversion was successful/skipped (True) or failed (False)
    """
    try:
        image = Image.open(io.BytesIO(image_bytes))

        if skip_if_webp and image.format == 'WEBP':
            logger.debug("Image is already WebP format, skipping conversion")
            return image_bytes, True

        image = _normalize_mode(image)
        if max_dimension:
            image = _scale_to_fit(image, max_dimension)

        webp_bytes = _encode_webp(image, quality, method)

        original_size = len(image_bytes)
        converted_size = len(webp_bytes)
        reduction = ((original_size - converted_size) / original_size) * 100 if original_size else 0.0
        logger.info(
            f"Converted image to WebP: "
            f"{original_size:,} bytes → {converted_size:,} bytes "
            f"({reduction:.1f}% reduction, quality={quality})"
        )

        return webp_bytes, True

    except UnidentifiedImageError as e:
        logger.warning(f"Cannot identify image format: {str(e)}")
        return image_bytes, False

    except (OSError, ValueError) as e:
        logger.error(f"Error converting image to WebP: {str(e)}", exc_info=True)
        return image_bytes, False


def make_mobile_variant(
    image_bytes: bytes,
    width: int,
    quality: int = DEFAULT_WEBP_QUALITY,
) -> Optional[bytes]:
    """
    Produce a WebP copy scaled down to the given width for mobile layouts.

    Returns:
        bytes: The mobile variant, or None when the image is already narrow
        enough or cannot be decoded (callers then reuse the full image)
    """
    try:
        image = Image.open(io.BytesIO(image_bytes))
        if image.width <= width:
            return None
        image = _normalize_mode(image)
        height = int(image.height * (width / image.width))
        resized = image.resize((width, height), Image.Resampling.LANCZOS)
        return _encode_webp(resized, quality, DEFAULT_WEBP_METHOD)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.warning(f"Could not build mobile variant: {str(e)}")
        return None
