"""
Page rasterization and image preprocessing for the OCR fallback.

Provides:
- PDF first-page rendering to PNG (pdf2image / poppler)
- Image decoding
- Grayscale, threshold and denoise steps ahead of Tesseract
"""

import logging
from pathlib import Path
from typing import Optional, Union
import numpy as np

from .errors import RenderFailed
from .io import temp_workspace

logger = logging.getLogger(__name__)

DEFAULT_MAX_DIMENSION_PX = 3000


# ============================================================================
# PDF Rendering
# ============================================================================

def render_pdf_to_image(
    pdf_bytes: bytes,
    max_dimension_px: int = DEFAULT_MAX_DIMENSION_PX,
    temp_dir: Optional[Union[str, Path]] = None,
    temp_prefix: str = "transcript_ingest_"
) -> bytes:
    """
    Rasterize the first page of a PDF to PNG bytes.

    The PDF and the rendered page are written to a private temporary
    directory that is removed whether rendering succeeds or fails.

    Args:
        pdf_bytes: Raw PDF content
        max_dimension_px: Cap on the long edge of the image
        temp_dir: Parent directory for temporary artifacts
        temp_prefix: Name prefix of the temporary directory

    Returns:
        PNG-encoded image bytes

    Raises:
        RenderFailed: If poppler is missing or the page cannot be rendered
    """
    try:
        from pdf2image import convert_from_path
        from pdf2image.exceptions import PDFPageCountError, PDFSyntaxError
    except ImportError as e:
        raise RenderFailed(
            "pdf2image is required. Install with: pip install pdf2image\n"
            "Also ensure poppler is installed on your system."
        ) from e

    with temp_workspace(prefix=temp_prefix, base_dir=temp_dir) as workdir:
        pdf_path = workdir / "transcript.pdf"
        pdf_path.write_bytes(pdf_bytes)

        try:
            logger.info(f"Rendering first page at max {max_dimension_px}px")
            paths = convert_from_path(
                str(pdf_path),
                size=max_dimension_px,
                first_page=1,
                last_page=1,
                fmt='png',
                output_folder=str(workdir),
                output_file="page",
                paths_only=True,
            )
        except (PDFPageCountError, PDFSyntaxError) as e:
            raise RenderFailed(f"Failed to parse PDF: {e}") from e
        except Exception as e:
            if "poppler" in str(e).lower():
                raise RenderFailed(
                    "Poppler is not installed. Install with:\n"
                    "  macOS: brew install poppler\n"
                    "  Linux: sudo apt-get install poppler-utils"
                ) from e
            raise RenderFailed(f"Image conversion failed: {e}") from e

        if not paths or not Path(paths[0]).exists():
            raise RenderFailed("Image conversion failed: output file not created")

        image_bytes = Path(paths[0]).read_bytes()

    logger.debug(f"Rendered page image: {len(image_bytes)} bytes")
    return image_bytes


# ============================================================================
# Image Decoding and Preprocessing
# ============================================================================

def decode_image(image_bytes: bytes) -> np.ndarray:
    """
    Decode encoded image bytes (PNG, JPEG, ...) to a BGR array.

    Raises:
        ValueError: If the bytes are not a decodable image
    """
    import cv2

    buffer = np.frombuffer(image_bytes, dtype=np.uint8)
    img = cv2.imdecode(buffer, cv2.IMREAD_COLOR) if buffer.size else None
    if img is None:
        raise ValueError("Could not decode image bytes")
    return img


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """
    Convert image to grayscale if it's color.

    Args:
        image: Input image (BGR or grayscale)

    Returns:
        Grayscale image
    """
    import cv2

    if len(image.shape) == 2:
        return image
    elif len(image.shape) == 3:
        if image.shape[2] == 3:
            return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        elif image.shape[2] == 4:
            return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
        elif image.shape[2] == 1:
            return image.squeeze()

    raise ValueError(f"Unexpected image shape: {image.shape}")


def prepare_for_ocr(image: np.ndarray, min_text_height: int = 30) -> np.ndarray:
    """
    Grayscale, upscale tiny crops, threshold and denoise a page image.

    Adaptive thresholding copes with the uneven lighting of scanned pages.
    """
    import cv2

    gray = to_grayscale(image).copy()

    h, w = gray.shape
    if h < min_text_height:
        scale = float(min_text_height) / h
        gray = cv2.resize(gray, None, fx=scale, fy=scale, interpolation=cv2.INTER_CUBIC)

    gray = cv2.adaptiveThreshold(
        gray, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C, cv2.THRESH_BINARY, 11, 2
    )
    gray = cv2.medianBlur(gray, 3)

    return gray
