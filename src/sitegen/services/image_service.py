"""Image Service
================

Featured images, logos and favicons for generated sites.

- DALL-E 3 renders article images, which are cover-cropped to 1024x1024 and
  re-encoded as WebP (quality stepped down until the file fits in 1 MB)
- HuggingFace FLUX renders header logos (600x200) through the aiohttp client
- favicons are either resized uploads (32x32 PNG) or an SVG monogram
"""

from __future__ import annotations

import base64
import io
import logging
import re
import uuid
from typing import Any, Dict, Optional, Tuple

import aiohttp
import requests
from flask import current_app
from openai import OpenAI
from PIL import Image, ImageOps

from ..constants import (
    FAVICON_SIZE, IMAGE_MAX_BYTES, IMAGE_MAX_PIXELS, IMAGE_MIN_QUALITY, IMAGE_QUALITY_STEP,
    IMAGE_START_QUALITY, IMAGE_TARGET_SIZE, LOGO_SIZE,
)
from ..utils.async_utils import run_async_safely
from ..utils.retry import with_timeout_and_retry
from ..utils.security import UnsafeURLError, fetch_public_url
from .dummy_content import DUMMY_IMAGE_URL, DUMMY_LOGO_URL
from .service_base import OperationError, ValidationError

logger = logging.getLogger(__name__)

IMAGE_MODEL = 'dall-e-3'
IMAGE_SIZE = '1792x1024'
LOGO_MODEL = 'black-forest-labs/flux-dev'
_NON_ALNUM = re.compile(r'[^a-z0-9]+')

Image.MAX_IMAGE_PIXELS = IMAGE_MAX_PIXELS


# ----------------------------------------------------------------------
# Pure image helpers
# ----------------------------------------------------------------------

def compress_to_webp(data: bytes, size: Tuple[int, int] = IMAGE_TARGET_SIZE,
                     max_bytes: int = IMAGE_MAX_BYTES) -> Tuple[bytes, int]:
    """Cover-crop ``data`` to ``size`` and encode as WebP.

    Quality starts at 90 and drops by 10 while the output is larger than
    ``max_bytes`` and quality is above 50. Returns ``(webp_bytes, quality)``.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img = ImageOps.exif_transpose(img)
            if img.mode not in ('RGB', 'RGBA'):
                img = img.convert('RGB')
            fitted = ImageOps.fit(img, size, method=Image.LANCZOS)
    except Image.DecompressionBombError as e:
        raise ValidationError("Image is too large to process") from e
    except (OSError, ValueError) as e:
        raise ValidationError(f"Unreadable image: {e}") from e

    quality = IMAGE_START_QUALITY
    encoded = _encode_webp(fitted, quality)
    while len(encoded) > max_bytes and quality > IMAGE_MIN_QUALITY:
        quality -= IMAGE_QUALITY_STEP
        encoded = _encode_webp(fitted, quality)
    return encoded, quality


def _encode_webp(img: Image.Image, quality: int) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, 'WEBP', quality=quality)
    return buffer.getvalue()


def resize_favicon(data: bytes, size: Tuple[int, int] = FAVICON_SIZE) -> bytes:
    """Cover-resize an uploaded favicon to a PNG of ``size``."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img = img.convert('RGBA')
            fitted = ImageOps.fit(img, size, method=Image.LANCZOS)
    except Image.DecompressionBombError as e:
        raise ValidationError("Favicon is too large to process") from e
    except (OSError, ValueError) as e:
        raise ValidationError(f"Unreadable favicon: {e}") from e
    buffer = io.BytesIO()
    fitted.save(buffer, 'PNG')
    return buffer.getvalue()


def image_filename(prompt: str, extension: str = 'webp') -> str:
    """``{slug(prompt)[:50]}-{uuid8}.{ext}``

    >>> image_filename('A Calm Lake!').startswith('a-calm-lake-')
    True
    """
    slug = _NON_ALNUM.sub('-', (prompt or '').lower()).strip('-')[:50] or 'image'
    return f"{slug}-{uuid.uuid4().hex[:8]}.{extension}"


def favicon_svg(text: str, color: str = '#3B82F6', size: int = 32) -> str:
    letter = (text or '?').strip()[:1].upper() or '?'
    half = size // 2
    return (
        f'<svg width="{size}" height="{size}" xmlns="http://www.w3.org/2000/svg">'
        f'<circle cx="{half}" cy="{half}" r="{half - 1}" fill="{color}" '
        'stroke="rgba(0,0,0,0.1)" stroke-width="1"/>'
        f'<text x="{half}" y="{half}" text-anchor="middle" dominant-baseline="central" '
        "font-family=\"'Inter', 'Segoe UI', 'Roboto', 'Helvetica Neue', sans-serif\" "
        f'font-size="18" font-weight="700" fill="white">{letter}</text>'
        '</svg>'
    )


def generate_favicon(text: str, color: Optional[str] = None) -> Dict[str, Any]:
    """SVG monogram favicon as a base64 data URL."""
    if not text:
        raise ValidationError("Text is required")
    color = color or '#3B82F6'
    if not isinstance(color, str) or not re.fullmatch(r'#[0-9A-Fa-f]{3,8}', color):
        raise ValidationError("color must be a hex colour like #3B82F6")
    svg = favicon_svg(text, color)
    encoded = base64.b64encode(svg.encode('utf-8')).decode('ascii')
    return {
        'faviconUrl': f'data:image/svg+xml;base64,{encoded}',
        'letter': text.strip()[:1].upper(),
        'color': color,
        'svg': svg,
    }


def decode_data_url(data_url: str) -> Tuple[bytes, str]:
    """Split a ``data:<mime>;base64,<payload>`` URL into bytes and mime type."""
    match = re.match(r'^data:([\w/+.-]+);base64,(.*)$', data_url or '', re.DOTALL)
    if not match:
        raise ValidationError("Invalid data URL")
    try:
        return base64.b64decode(match.group(2)), match.group(1)
    except (ValueError, TypeError) as e:
        raise ValidationError(f"Invalid base64 payload: {e}") from e


def load_image_source(source: str, timeout: float = 30) -> Tuple[bytes, str]:
    """Bytes and mime type of a data URL or an (SSRF-checked) remote image."""
    if source.startswith('data:'):
        return decode_data_url(source)
    try:
        response = fetch_public_url(source, timeout)
    except UnsafeURLError as e:
        raise ValidationError(str(e)) from e
    except requests.RequestException as e:
        raise OperationError(f"Failed to fetch image: {e}") from e
    content_type = response.headers.get('Content-Type', 'application/octet-stream').split(';')[0]
    return response.content, content_type


# ----------------------------------------------------------------------
# Vendor-backed generation
# ----------------------------------------------------------------------

class ImageService:
    def __init__(self, storage=None, ai_content=None, client: Optional[OpenAI] = None,
                 is_production: Optional[bool] = None):
        cfg = current_app.config
        self.is_production = cfg.get('IS_PRODUCTION', False) if is_production is None else is_production
        self.timeout = cfg.get('OPENAI_TIMEOUT', 30.0)
        self.http_timeout = cfg.get('HTTP_TIMEOUT', 30)
        self._api_key = cfg.get('OPENAI_API_KEY')
        self._client = client
        self._storage = storage
        self._ai_content = ai_content

    @property
    def storage(self):
        if self._storage is None:
            from .storage_service import StorageService
            self._storage = StorageService()
        return self._storage

    @property
    def ai_content(self):
        if self._ai_content is None:
            from .ai_content_service import AIContentService
            self._ai_content = AIContentService(is_production=self.is_production)
        return self._ai_content

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self._api_key:
                raise OperationError("OpenAI API key not configured")
            self._client = OpenAI(api_key=self._api_key)
        return self._client

    def render_and_store(self, prompt: str, folder: str = 'generated') -> str:
        """DALL-E render, compress, upload; returns the CDN URL."""
        response = with_timeout_and_retry(
            lambda: self.client.images.generate(
                model=IMAGE_MODEL, prompt=prompt, n=1, size=IMAGE_SIZE, quality='hd', style='natural',
            ),
            retries=0,
            timeout=max(self.timeout, 120.0),
        )
        remote_url = response.data[0].url if response.data else None
        if not remote_url:
            raise OperationError("No image URL returned from OpenAI")

        downloaded = requests.get(remote_url, timeout=self.http_timeout)
        downloaded.raise_for_status()
        webp, quality = compress_to_webp(downloaded.content)
        logger.info("Compressed generated image to %d bytes at quality %d", len(webp), quality)
        return self.storage.upload_bytes(webp, image_filename(prompt), folder, 'image/webp')

    def generate_article_image(self, title: str, prompt: Optional[str] = None,
                               folder: str = 'generated') -> Dict[str, Any]:
        """Render an image for an article.

        A rejected prompt is retried once with a safe prompt derived from the
        title; if that also fails the dummy image is returned.
        """
        if not title:
            raise ValidationError("title is required")
        if not self.is_production:
            return {'imageUrl': DUMMY_IMAGE_URL, 'prompt': 'Using dummy image outside production.', 'fallback': True}

        prompt = (prompt or '').strip()
        try:
            if not prompt:
                prompt = self.ai_content.generate_safe_prompt(title)
            return {'imageUrl': self.render_and_store(prompt, folder), 'prompt': prompt}
        except Exception as e:
            logger.warning("Image prompt failed (%s): %s", prompt, e)

        try:
            safe_prompt = self.ai_content.generate_safe_prompt(title)
            logger.info("Using safe regenerated prompt: %s", safe_prompt)
            return {'imageUrl': self.render_and_store(safe_prompt, folder), 'prompt': safe_prompt}
        except Exception as e:
            logger.warning("Safe fallback prompt failed, returning dummy image: %s", e)
            return {'imageUrl': DUMMY_IMAGE_URL, 'prompt': 'Safe fallback prompt failed. Returning dummy image.',
                    'fallback': True}

    def store_article_image(self, source: str, filename_hint: str, folder: str) -> str:
        """Persist a data URL or remote image to Spaces as compressed WebP."""
        data, _ = load_image_source(source, self.http_timeout)
        webp, _ = compress_to_webp(data)
        return self.storage.upload_bytes(webp, image_filename(filename_hint), folder, 'image/webp')

    # -- logos ----------------------------------------------------------

    @staticmethod
    def logo_prompt(site_name: str, color: str, style: str) -> str:
        brand = re.sub(r'\.(com|net|org|co)$', '', site_name.strip(), flags=re.IGNORECASE)
        return (
            f'Create a professional {style} website header logo for the brand "{brand}". '
            f'The logo must be strictly horizontal, with a clean icon on the left and the brand name "{brand}" '
            f'on the right. Icon uses only the color {color}. Flat pure white background, no gradients, '
            'no taglines, no domain extensions, bold legible typography. Exactly 600 x 200 pixels, PNG.'
        )

    async def _request_logo(self, prompt: str) -> Tuple[bool, Dict[str, Any], int]:
        cfg = current_app.config
        headers = {
            'Authorization': f"Bearer {cfg.get('HUGGINGFACE_API_KEY')}",
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }
        payload = {
            'prompt': prompt,
            'model': LOGO_MODEL,
            'width': LOGO_SIZE[0],
            'height': LOGO_SIZE[1],
            'output_format': 'png',
        }
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    cfg.get('HUGGINGFACE_LOGO_URL'),
                    json=payload,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=120)
                ) as response:
                    if response.status != 200:
                        text = await response.text()
                        logger.error(f"HuggingFace API error (Status: {response.status}): {text[:300]}")
                        return False, {'error': f'Hugging Face API error: {response.status}', 'details': text}, response.status
                    return True, await response.json(), response.status
        except aiohttp.ClientError as e:
            logger.error(f"Network error calling HuggingFace: {e}")
            return False, {'error': f'Network error: {e}'}, 503

    def generate_logo(self, site_name: str, color: str = '#000000', style: str = 'vintage') -> Dict[str, Any]:
        if not site_name:
            raise ValidationError("Text is required")
        if not self.is_production:
            return {'logoUrl': DUMMY_LOGO_URL, 'prompt': 'Using placeholder image outside production.'}
        if not current_app.config.get('HUGGINGFACE_API_KEY'):
            raise OperationError("Hugging Face API key not configured")

        prompt = self.logo_prompt(site_name, color, style)
        ok, data, status = run_async_safely(self._request_logo(prompt))
        if not ok:
            raise OperationError(data.get('error', 'Failed to generate logo'), details={'status': status})

        items = data.get('data') or []
        logo_url = items[0].get('url') if items else None
        if not logo_url and items and items[0].get('b64_json'):
            logo_url = f"data:image/png;base64,{items[0]['b64_json']}"
        if not logo_url:
            raise OperationError("Unexpected response format from Hugging Face API")
        return {'logoUrl': logo_url, 'prompt': prompt}
