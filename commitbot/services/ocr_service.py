import asyncio
import logging
from io import BytesIO
from typing import Optional

import httpx
import pytesseract
from PIL import Image

from ..core.defaults_loader import get_config_value, get_timeout

logger = logging.getLogger(__name__)


class OCRService:
    """Extracts text from proof images with Tesseract"""

    def __init__(self, language: Optional[str] = None) -> None:
        self.language = language or get_config_value("ocr.language", "eng")
        self.download_timeout = get_timeout("image_download", 20.0)

    async def _download(self, image_url: str) -> bytes:
        async with httpx.AsyncClient(
            timeout=self.download_timeout, follow_redirects=True
        ) as client:
            response = await client.get(image_url)
            response.raise_for_status()
            return response.content

    def _recognize(self, image_data: bytes) -> str:
        image = Image.open(BytesIO(image_data))
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        return pytesseract.image_to_string(image, lang=self.language)

    async def extract_text(self, image_url: str) -> str:
        """Return the text found in the image, or "" if anything fails."""
        try:
            image_data = await self._download(image_url)
            text = await asyncio.to_thread(self._recognize, image_data)
            logger.info(f"Extracted {len(text)} characters from {image_url}")
            return text.strip()
        except Exception as e:
            logger.error(f"Error analyzing image {image_url}: {e}")
            return ""


# Global service instance
_ocr_service: Optional[OCRService] = None


def get_ocr_service() -> OCRService:
    """Get the global OCR service instance"""
    global _ocr_service
    if _ocr_service is None:
        _ocr_service = OCRService()
    return _ocr_service
