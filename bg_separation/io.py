from __future__ import annotations

import io
from typing import Optional

import numpy as np
from PIL import Image, UnidentifiedImageError

from .contracts import EncodingParams
from .errors import DecodeError, EncodeError
from .raster import RasterImage

# outputFormat -> (PIL format name, MIME type)
_FORMATS = {
    "png": ("PNG", "image/png"),
    "jpg": ("JPEG", "image/jpeg"),
    "webp": ("WEBP", "image/webp"),
}


def mime_type(output_format: str) -> str:
    return _FORMATS[output_format][1]


def decode_image(data: bytes, content_type: Optional[str] = None) -> RasterImage:
    """
    Decode raw bytes into an RGBA RasterImage.

    Only the first frame of animated inputs is used.
    """
    if content_type and not content_type.lower().startswith("image/"):
        raise DecodeError(f"Unsupported content type: {content_type}")
    if not data:
        raise DecodeError("Empty image payload")
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise DecodeError(f"Failed to load image: {e}") from e

    w, h = img.size
    if w <= 0 or h <= 0:
        raise DecodeError(f"Invalid image size: {(w, h)}")

    arr = np.array(img.convert("RGBA"), dtype=np.uint8)
    if arr.ndim != 3 or arr.shape[2] != 4:
        raise DecodeError(f"Expected RGBA image array, got shape={arr.shape}")
    return RasterImage(arr)


def to_pil(image: RasterImage) -> Image.Image:
    return Image.fromarray(np.array(image.pixels))


def _flatten_alpha_to_white(img: Image.Image) -> Image.Image:
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        bg = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
        comp = Image.alpha_composite(bg, rgba)
        return comp.convert("RGB")
    return img.convert("RGB")


def encode_image(image: RasterImage, params: EncodingParams) -> bytes:
    """
    Serialize to png / jpg / webp.

    - png: lossless RGBA
    - jpg: no alpha channel, so the image is flattened onto white first
    - webp: RGBA, lossy at `quality`
    """
    fmt, _ = _FORMATS[params.output_format]
    img = to_pil(image)
    buf = io.BytesIO()
    try:
        if fmt == "PNG":
            img.save(buf, format="PNG", optimize=False)
        elif fmt == "JPEG":
            _flatten_alpha_to_white(img).save(buf, format="JPEG", quality=int(params.quality))
        else:
            img.save(buf, format="WEBP", quality=int(params.quality))
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(f"Failed to encode {params.output_format}: {e}") from e
    return buf.getvalue()
