"""Raster loading and encoding for frame sources.

A frame's ``pixel_source`` is either a path to an image file written by the
extractor or an in-memory ndarray (grayscale, BGR or BGRA).
"""

import base64
from os import PathLike
from typing import Any

import cv2
import numpy as np


def load_gray(pixel_source: Any) -> np.ndarray:
    """Return the frame as a 2-D uint8 grayscale array.

    Raises:
        ValueError: If the source cannot be read or has an unsupported shape.
    """
    if isinstance(pixel_source, (str, PathLike)):
        gray = cv2.imread(str(pixel_source), cv2.IMREAD_GRAYSCALE)
        if gray is None:
            raise ValueError(f"Unreadable image: {pixel_source}")
        return gray

    if not isinstance(pixel_source, np.ndarray) or pixel_source.size == 0:
        raise ValueError(f"Unsupported pixel source: {type(pixel_source).__name__}")

    image = pixel_source
    if image.dtype != np.uint8:
        image = np.clip(image, 0, 255).astype(np.uint8)

    if image.ndim == 2:
        return image
    if image.ndim == 3 and image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    raise ValueError(f"Unsupported image shape: {image.shape}")


def encode_png_b64(pixel_source: Any) -> str:
    """Return the frame as a base64 PNG string (no data-URI prefix)."""
    if isinstance(pixel_source, (str, PathLike)):
        image = cv2.imread(str(pixel_source), cv2.IMREAD_COLOR)
        if image is None:
            raise ValueError(f"Unreadable image: {pixel_source}")
    elif isinstance(pixel_source, np.ndarray) and pixel_source.size > 0:
        image = pixel_source
    else:
        raise ValueError(f"Unsupported pixel source: {type(pixel_source).__name__}")

    ok, buf = cv2.imencode(".png", image)
    if not ok:
        raise ValueError("Failed to encode frame as PNG")
    return base64.b64encode(buf.tobytes()).decode("ascii")
