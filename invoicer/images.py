"""Image loading and displayable image references."""

from __future__ import annotations

import base64
import mimetypes
from pathlib import Path
from urllib.parse import quote

_PLACEHOLDER_SVG = (
    "<svg xmlns='http://www.w3.org/2000/svg' fill='none' viewBox='0 0 24 24' "
    "stroke-width='1.5' stroke='#6c757d'><path stroke-linecap='round' "
    "stroke-linejoin='round' d='M19.5 14.25v-2.625a3.375 3.375 0 0 0-3.375-3.375"
    "h-1.5A1.125 1.125 0 0 1 13.5 7.125v-1.5a3.375 3.375 0 0 0-3.375-3.375H8.25"
    "m0 12.75h7.5m-7.5 3H12M10.5 2.25H5.625c-.621 0-1.125.504-1.125 1.125v17.25"
    "c0 .621.504 1.125 1.125 1.125h12.75c.621 0 1.125-.504 1.125-1.125V11.25"
    "a9 9 0 0 0-9-9Z' /></svg>\n"
)

# Document icon shown for bills entered by hand.
PLACEHOLDER_IMAGE_REF = "data:image/svg+xml," + quote(_PLACEHOLDER_SVG, safe="=/:'")


def to_data_url(data: bytes, mime_type: str) -> str:
    """Encode image bytes as a base64 ``data:`` URL."""
    encoded = base64.standard_b64encode(data).decode()
    return f"data:{mime_type};base64,{encoded}"


def load_image(path: str | Path) -> tuple[bytes, str]:
    """Read an image file and guess its MIME type.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not an image.
    """
    p = Path(path)
    mime_type = mimetypes.guess_type(p.name)[0]
    if mime_type is None or not mime_type.startswith("image/"):
        raise ValueError(f"Not an image file: {p}")
    return p.read_bytes(), mime_type
