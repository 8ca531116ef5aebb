"""
Shared fixtures for Curve Editor tests.

Provides generated sample images, fresh documents, a scripted AI service
and editing sessions wired to temporary config/export directories.
"""
import os
import io
import asyncio

import pytest
from PIL import Image

# Widgets are created without a display
os.environ.setdefault('QT_QPA_PLATFORM', 'offscreen')

from curve_editor.errors import AIServiceError
from curve_editor.models.document import Document, Viewport
from curve_editor.services.ai_service import AIResult
from curve_editor.services.export_service import FileExportSink
from curve_editor.services.image_codec import decode


# ── Sample images ───────────────────────────────────────────────────────

def make_png(width, height, color=(200, 40, 40, 255)):
    """Solid-colour PNG bytes"""
    buffer = io.BytesIO()
    Image.new('RGBA', (width, height), color).save(buffer, format='PNG')
    return buffer.getvalue()


def make_jpeg(width, height, color=(40, 120, 200)):
    buffer = io.BytesIO()
    Image.new('RGB', (width, height), color).save(buffer, format='JPEG', quality=90)
    return buffer.getvalue()


def run(coro):
    """Drive a coroutine to completion on a fresh event loop"""
    return asyncio.run(coro)


@pytest.fixture
def base_png():
    """800x600 base image (fit scale 0.8 on an 800x600 canvas)"""
    return make_png(800, 600)


@pytest.fixture
def small_png():
    """400x300 image, drawn at 640x480 on an 800x600 canvas"""
    return make_png(400, 300, (40, 200, 40, 255))


@pytest.fixture
def fresh_document():
    """Empty document on an 800x600 canvas"""
    return Document(Viewport(800, 600))


@pytest.fixture
def loaded_document(base_png):
    """Document with the 800x600 base image set"""
    doc = Document(Viewport(800, 600))
    doc.set_base_image(base_png, decode(base_png))
    return doc


# ── Scripted AI service ─────────────────────────────────────────────────

class FakeAIService:
    """Stands in for AIImageService.

    Every call is recorded. Set `error` to make calls raise it, `gate` to
    an asyncio.Event to hold calls until it is set, and `result` to choose
    the returned bytes.
    """

    def __init__(self, result=None):
        self.result = result or make_png(64, 48, (10, 10, 240, 255))
        self.error = None
        self.gate = None
        self.is_mock = False
        self.message = None
        self.calls = []

    async def _answer(self, operation, *args):
        self.calls.append((operation, args))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return AIResult(self.result, is_mock=self.is_mock, message=self.message)

    async def generate(self, prompt):
        return await self._answer('generate', prompt)

    async def enhance(self, image_data):
        return await self._answer('enhance', image_data)

    async def upscale(self, image_data, factor=2):
        return await self._answer('upscale', image_data, factor)

    async def remove_background(self, image_data):
        return await self._answer('remove background', image_data)

    async def generative_fill(self, image_data, mask_data, prompt):
        return await self._answer('generative fill', image_data, mask_data, prompt)

    async def expand(self, image_data, factor=1.5, prompt=""):
        return await self._answer('expand', image_data, factor, prompt)


@pytest.fixture
def fake_ai():
    return FakeAIService()


@pytest.fixture
def failing_ai():
    ai = FakeAIService()
    ai.error = AIServiceError('generate', 'network error: connection refused')
    return ai


# ── Sessions ────────────────────────────────────────────────────────────

@pytest.fixture
def export_dir(tmp_path):
    return tmp_path / 'exports'


@pytest.fixture
def session(tmp_path, fake_ai, export_dir):
    """Fresh session on an 800x600 canvas with no image"""
    from curve_editor.main.session import EditorSession
    return EditorSession(
        Viewport(800, 600),
        ai_service=fake_ai,
        export_sink=FileExportSink(str(export_dir)),
        config_dir=str(tmp_path / 'config'),
    )


@pytest.fixture
def loaded_session(session, base_png):
    """Session with the 800x600 base image imported (one history entry)"""
    assert run(session.import_image(base_png))
    return session
