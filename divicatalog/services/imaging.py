import io

from PIL import Image, ImageOps

from divicatalog.models.config import ThumbSettings

# Guard against decompression bombs from hostile og:image targets
Image.MAX_IMAGE_PIXELS = 50_000_000

_PIL_FORMATS = {"webp": "WEBP", "jpg": "JPEG", "jpeg": "JPEG"}


def normalize_image(raw: bytes, settings: ThumbSettings) -> bytes:
    """Cover-fit *raw* to ``max_w`` x ``max_h`` and re-encode it.

    Raises:
        PIL.UnidentifiedImageError: if *raw* is not a decodable image.
        ValueError: if the configured format is not a supported lossy format.
    """
    pil_format = _PIL_FORMATS.get(settings.format.lower())
    if pil_format is None:
        raise ValueError(f"Unsupported thumbnail format '{settings.format}'.")

    with Image.open(io.BytesIO(raw)) as image:
        image = ImageOps.exif_transpose(image)
        if image.mode not in ("RGB", "RGBA"):
            image = image.convert("RGBA" if "transparency" in image.info else "RGB")
        if pil_format == "JPEG" and image.mode == "RGBA":
            image = image.convert("RGB")
        fitted = ImageOps.fit(
            image,
            (settings.max_w, settings.max_h),
            method=Image.Resampling.LANCZOS,
        )

    output = io.BytesIO()
    fitted.save(output, format=pil_format, quality=settings.quality)
    return output.getvalue()
