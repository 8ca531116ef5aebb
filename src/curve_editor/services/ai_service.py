"""AI image service: the external HTTP boundary.

Six operations (generate, enhance, upscale, remove_background,
generative_fill, expand), each returning an AIResult with encoded PNG/JPEG
bytes. Calls go through requests on a worker thread with a bounded timeout.

Failures (network error, non-2xx, timeout) raise AIServiceError naming the
operation; the session turns them into a notification and keeps the
current image. When credentials are missing the service answers with a
local placeholder and is_mock=True instead of calling out. Enhance and
expand also fall back to that placeholder when the provider call fails.
"""
import asyncio
import io
import logging
import os
import random
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import numpy as np
import requests
from PIL import Image, ImageDraw, ImageFilter, ImageStat

from curve_editor.constants import (
    DEFAULT_AI_TIMEOUT, UPSCALE_FACTORS, DEFAULT_EXPAND_FACTOR, DEFAULT_EXPAND_PROMPT,
    MOCK_IMAGE_SIZE,
)
from curve_editor.errors import AIServiceError
from curve_editor.utils.text_metrics import load_font

logger = logging.getLogger(__name__)

POLLINATIONS_URL = "https://image.pollinations.ai/prompt/{prompt}"
CLOUDFLARE_ENHANCE_URL = "https://api.cloudflare.com/client/v4/accounts/{account}/ai/run/@cf/ai-image-enhance"
HF_INFERENCE_URL = "https://api-inference.huggingface.co/models/{model}"
INPAINT_MODEL = "runwayml/stable-diffusion-inpainting"
OUTPAINT_MODEL = "diffusers/stable-diffusion-2-inpainting"
BACKGROUND_MODELS = (
    "briaai/BRIA-2.2-ControlNet-Removal",
    "briaai/BRIA-2.3",
    "briaai/BRIA-RMBG-1.4",
)

# Prompt keyword -> gradient colours for the offline placeholder
_PROMPT_PALETTES = (
    (("ocean", "sea", "water"), ("#667eea", "#3b82f6")),
    (("sunset", "fire", "warm"), ("#f093fb", "#f5576c")),
    (("forest", "nature", "green"), ("#4facfe", "#00f2fe")),
    (("space", "galaxy", "cosmic"), ("#30cfd0", "#330867")),
    (("night", "dark", "moon"), ("#2c3e50", "#4ca1af")),
)
_DEFAULT_PALETTE = ("#a8edea", "#fed6e3")


@dataclass
class AIConfig:
    """Provider credentials and limits."""
    huggingface_api_key: str = ""
    cloudflare_account_id: str = ""
    cloudflare_api_key: str = ""
    bg_proxy_url: str = ""
    timeout: float = DEFAULT_AI_TIMEOUT

    @classmethod
    def from_env(cls, timeout: float = None) -> 'AIConfig':
        return cls(
            huggingface_api_key=os.environ.get('CURVE_HUGGINGFACE_API_KEY', '').strip(),
            cloudflare_account_id=os.environ.get('CURVE_CLOUDFLARE_ACCOUNT_ID', '').strip(),
            cloudflare_api_key=os.environ.get('CURVE_CLOUDFLARE_API_KEY', '').strip(),
            bg_proxy_url=os.environ.get('CURVE_BG_PROXY_URL', '').strip(),
            timeout=DEFAULT_AI_TIMEOUT if timeout is None else timeout,
        )

    @property
    def has_huggingface(self) -> bool:
        return bool(self.huggingface_api_key)

    @property
    def has_cloudflare(self) -> bool:
        return bool(self.cloudflare_account_id and self.cloudflare_api_key)


@dataclass
class AIResult:
    """Encoded image returned by an AI operation."""
    data: bytes
    is_mock: bool = False
    message: Optional[str] = None


def _png_bytes(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format='PNG')
    return buffer.getvalue()


def _open_rgba(data: bytes) -> Image.Image:
    with Image.open(io.BytesIO(data)) as img:
        return img.convert('RGBA')


# ======================================================================
# Local placeholders
# ======================================================================

def placeholder_image(prompt: str, size: int = MOCK_IMAGE_SIZE) -> Image.Image:
    """Diagonal gradient picked from prompt keywords, with the first words drawn on it."""
    lower = prompt.lower()
    start, end = _DEFAULT_PALETTE
    for keywords, palette in _PROMPT_PALETTES:
        if any(word in lower for word in keywords):
            start, end = palette
            break
    c0 = np.array(Image.new('RGB', (1, 1), start).getpixel((0, 0)), dtype=np.float32)
    c1 = np.array(Image.new('RGB', (1, 1), end).getpixel((0, 0)), dtype=np.float32)

    ramp = np.add.outer(np.arange(size), np.arange(size)).astype(np.float32) / (2 * (size - 1))
    pixels = c0 + (c1 - c0) * ramp[..., None]
    image = Image.fromarray(pixels.round().astype(np.uint8), 'RGB').convert('RGBA')

    caption = " ".join(prompt.split()[:5])
    if caption:
        draw = ImageDraw.Draw(image)
        draw.text((size / 2, size / 2), caption, font=load_font("Arial", 48), anchor='mm',
                  fill=(255, 255, 255, 230))
    return image


def enhance_placeholder(image: Image.Image) -> Image.Image:
    return image.filter(ImageFilter.UnsharpMask(radius=2, percent=120, threshold=3))


def upscale_placeholder(image: Image.Image, factor: int) -> Image.Image:
    resized = image.resize((image.width * factor, image.height * factor), Image.LANCZOS)
    return resized.filter(ImageFilter.SHARPEN)


def build_outpaint_canvas(image: Image.Image, factor: float = DEFAULT_EXPAND_FACTOR):
    """Larger canvas filled with the image's average colour, original centred.

    Returns:
        (canvas, mask, offset) where the mask is white over the original area
    """
    new_w = int(round(image.width * factor))
    new_h = int(round(image.height * factor))
    average = tuple(int(round(c)) for c in ImageStat.Stat(image.convert('RGB')).mean)

    canvas = Image.new('RGBA', (new_w, new_h), average + (255,))
    offset = ((new_w - image.width) // 2, (new_h - image.height) // 2)
    canvas.alpha_composite(image.convert('RGBA'), offset)

    mask = Image.new('L', (new_w, new_h), 0)
    ImageDraw.Draw(mask).rectangle(
        (offset[0], offset[1], offset[0] + image.width - 1, offset[1] + image.height - 1), fill=255)
    return canvas, mask, offset


# ======================================================================
# Service
# ======================================================================

class AIImageService:
    """Async facade over the AI providers."""

    def __init__(self, config: AIConfig = None, http=None):
        self.config = config or AIConfig.from_env()
        self.http = http or requests.Session()

    # ========================================
    # Plumbing
    # ========================================

    def _request(self, operation, method, url, **kwargs) -> bytes:
        """Blocking HTTP call; non-2xx and transport errors become AIServiceError."""
        try:
            response = self.http.request(method, url, timeout=self.config.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise AIServiceError(operation, "request timed out") from e
        except requests.exceptions.RequestException as e:
            raise AIServiceError(operation, f"network error: {e}") from e
        if not 200 <= response.status_code < 300:
            raise AIServiceError(operation, f"HTTP {response.status_code}: {response.text[:200]}")
        return response.content

    async def _call(self, operation, func, *args) -> AIResult:
        logger.info("AI %s started", operation)
        try:
            result = await asyncio.wait_for(asyncio.to_thread(func, *args), self.config.timeout)
        except asyncio.TimeoutError as e:
            raise AIServiceError(operation, "request timed out") from e
        logger.info("AI %s finished (mock=%s)", operation, result.is_mock)
        return result

    def _hf_headers(self):
        return {'Authorization': f'Bearer {self.config.huggingface_api_key}'}

    # ========================================
    # Operations
    # ========================================

    async def generate(self, prompt: str) -> AIResult:
        return await self._call('generate', self._generate, prompt)

    def _generate(self, prompt):
        url = POLLINATIONS_URL.format(prompt=quote(prompt))
        params = {'model': 'flux', 'width': MOCK_IMAGE_SIZE, 'height': MOCK_IMAGE_SIZE,
                  'seed': random.randint(0, 2 ** 31 - 1)}
        return AIResult(self._request('generate', 'GET', url, params=params))

    async def enhance(self, image_data: bytes) -> AIResult:
        return await self._call('enhance', self._enhance, image_data)

    def _enhance(self, image_data):
        if not self.config.has_cloudflare:
            return AIResult(_png_bytes(enhance_placeholder(_open_rgba(image_data))), is_mock=True)
        url = CLOUDFLARE_ENHANCE_URL.format(account=self.config.cloudflare_account_id)
        headers = {'Authorization': f'Bearer {self.config.cloudflare_api_key}'}
        try:
            return AIResult(self._request('enhance', 'POST', url, headers=headers, data=image_data))
        except AIServiceError as e:
            logger.warning("Enhance provider failed, using local preview: %s", e)
            return AIResult(_png_bytes(enhance_placeholder(_open_rgba(image_data))), is_mock=True,
                            message="Enhance failed, showing a preview")

    async def upscale(self, image_data: bytes, factor: int = 2) -> AIResult:
        if factor not in UPSCALE_FACTORS:
            raise ValueError(f"Upscale factor must be one of {UPSCALE_FACTORS}, got {factor}")
        return await self._call('upscale', self._upscale, image_data, factor)

    def _upscale(self, image_data, factor):
        # No upscale provider is wired up; always a local resample
        return AIResult(_png_bytes(upscale_placeholder(_open_rgba(image_data), factor)), is_mock=True)

    async def remove_background(self, image_data: bytes) -> AIResult:
        return await self._call('remove background', self._remove_background, image_data)

    def _remove_background(self, image_data):
        operation = 'remove background'
        if self.config.bg_proxy_url:
            headers = self._hf_headers() if self.config.has_huggingface else {}
            try:
                return AIResult(self._request(operation, 'POST', self.config.bg_proxy_url,
                                              headers=headers, data=image_data))
            except AIServiceError as e:
                if not self.config.has_huggingface:
                    raise
                logger.warning("Background proxy failed, trying Hugging Face: %s", e)

        if not self.config.has_huggingface:
            return AIResult(image_data, is_mock=True,
                            message="Background removal needs a Hugging Face API key")

        last_error = None
        for model in BACKGROUND_MODELS:
            try:
                return AIResult(self._request(operation, 'POST', HF_INFERENCE_URL.format(model=model),
                                              headers=self._hf_headers(), data=image_data))
            except AIServiceError as e:
                logger.warning("Background model %s failed: %s", model, e)
                last_error = e
        raise last_error

    async def generative_fill(self, image_data: bytes, mask_data: bytes, prompt: str) -> AIResult:
        return await self._call('generative fill', self._generative_fill, image_data, mask_data, prompt)

    def _generative_fill(self, image_data, mask_data, prompt):
        if not self.config.has_huggingface:
            return AIResult(image_data, is_mock=True,
                            message="Hugging Face API Key is required for Generative Fill.")
        files = {'image': ('image.png', image_data, 'image/png'),
                 'mask': ('mask.png', mask_data, 'image/png')}
        return AIResult(self._request('generative fill', 'POST', HF_INFERENCE_URL.format(model=INPAINT_MODEL),
                                      headers=self._hf_headers(), files=files, data={'prompt': prompt}))

    async def expand(self, image_data: bytes, factor: float = DEFAULT_EXPAND_FACTOR, prompt: str = "") -> AIResult:
        if factor <= 1:
            raise ValueError(f"Expand factor must be greater than 1, got {factor}")
        return await self._call('expand', self._expand, image_data, factor, prompt)

    def _expand(self, image_data, factor, prompt):
        canvas, mask, _ = build_outpaint_canvas(_open_rgba(image_data), factor)
        canvas_bytes = _png_bytes(canvas)
        if not self.config.has_huggingface:
            return AIResult(canvas_bytes, is_mock=True)
        files = {'init_image': ('image.png', canvas_bytes, 'image/png'),
                 'mask': ('mask.png', _png_bytes(mask), 'image/png')}
        try:
            return AIResult(self._request('expand', 'POST', HF_INFERENCE_URL.format(model=OUTPAINT_MODEL),
                                          headers=self._hf_headers(), files=files,
                                          data={'prompt': prompt or DEFAULT_EXPAND_PROMPT}))
        except AIServiceError as e:
            logger.warning("Expand provider failed, using padded canvas: %s", e)
            return AIResult(canvas_bytes, is_mock=True, message="Expand failed, showing a preview")
