"""
Pillow implementation of the ImageTranscoder interface.

Artwork is converted to an RGB, baseline (non-progressive) JPEG whose
longer side is at most max_dimension. Smaller images keep their size.
"""

from io import BytesIO

from PIL import Image, UnidentifiedImageError

from flac_auditor.core.logger import get_logger
from flac_auditor.tools.base import ImageTranscoder

logger = get_logger(__name__)


class PillowTranscoder(ImageTranscoder):
    """ImageTranscoder backed by Pillow."""

    @property
    def available(self) -> bool:
        return True

    def transcode(self, data: bytes, max_dimension: int, quality: int) -> bytes | None:
        try:
            with Image.open(BytesIO(data)) as img:
                img.load()
                # Convert transparency and palette modes to solid RGB for JPEG
                if img.mode != "RGB":
                    img = img.convert("RGB")

                # thumbnail() only ever shrinks
                if max(img.size) > max_dimension:
                    img.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)

                output = BytesIO()
                img.save(output, format="JPEG", quality=quality, optimize=True, progressive=False)
                return output.getvalue()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.debug(f"Artwork transcode failed: {e}")
            return None
