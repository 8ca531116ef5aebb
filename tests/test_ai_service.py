"""
Tests for the AI image service.

The HTTP session is replaced by a recording fake; no network access.
"""
import io

import pytest
import requests
from PIL import Image

from conftest import make_png, run
from curve_editor.errors import AIServiceError
from curve_editor.services.ai_service import (
    AIConfig, AIImageService, BACKGROUND_MODELS, build_outpaint_canvas, placeholder_image,
)


class FakeResponse:
    def __init__(self, status_code=200, content=b'', text=''):
        self.status_code = status_code
        self.content = content
        self.text = text


class FakeHttp:
    """Stands in for requests.Session: replays queued responses or exceptions."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        response = self.responses.pop(0) if self.responses else FakeResponse(content=make_png(8, 8))
        if isinstance(response, Exception):
            raise response
        return response


def size_of(data):
    with Image.open(io.BytesIO(data)) as img:
        return img.size


@pytest.fixture
def no_keys():
    return AIConfig(timeout=5)


@pytest.fixture
def hf_keys():
    return AIConfig(huggingface_api_key='hf_test', timeout=5)


# ══════════════════════════════════════════════════════════════════════════
# Configuration
# ══════════════════════════════════════════════════════════════════════════

class TestConfig:

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv('CURVE_HUGGINGFACE_API_KEY', ' hf_abc ')
        monkeypatch.setenv('CURVE_CLOUDFLARE_ACCOUNT_ID', 'acct')
        monkeypatch.delenv('CURVE_CLOUDFLARE_API_KEY', raising=False)
        config = AIConfig.from_env(timeout=12)
        assert config.huggingface_api_key == 'hf_abc'
        assert config.has_huggingface
        assert not config.has_cloudflare
        assert config.timeout == 12


# ══════════════════════════════════════════════════════════════════════════
# Placeholders without credentials
# ══════════════════════════════════════════════════════════════════════════

class TestWithoutCredentials:

    def test_enhance_is_local(self, no_keys):
        http = FakeHttp()
        result = run(AIImageService(no_keys, http).enhance(make_png(40, 30)))
        assert result.is_mock
        assert size_of(result.data) == (40, 30)
        assert http.requests == []

    @pytest.mark.parametrize("factor", [2, 4])
    def test_upscale_multiplies_size(self, no_keys, factor):
        result = run(AIImageService(no_keys, FakeHttp()).upscale(make_png(40, 30), factor))
        assert size_of(result.data) == (40 * factor, 30 * factor)

    @pytest.mark.parametrize("factor", [1, 3, 8])
    def test_upscale_rejects_other_factors(self, no_keys, factor):
        with pytest.raises(ValueError):
            run(AIImageService(no_keys, FakeHttp()).upscale(make_png(4, 4), factor))

    def test_remove_background_passes_through(self, no_keys):
        data = make_png(20, 20)
        result = run(AIImageService(no_keys, FakeHttp()).remove_background(data))
        assert result.data == data
        assert result.is_mock
        assert result.message == "Background removal needs a Hugging Face API key"

    def test_generative_fill_passes_through(self, no_keys):
        data = make_png(20, 20)
        result = run(AIImageService(no_keys, FakeHttp()).generative_fill(data, make_png(20, 20), "boat"))
        assert result.data == data
        assert result.message == "Hugging Face API Key is required for Generative Fill."

    def test_expand_builds_canvas_locally(self, no_keys):
        result = run(AIImageService(no_keys, FakeHttp()).expand(make_png(100, 60)))
        assert result.is_mock
        assert size_of(result.data) == (150, 90)

    @pytest.mark.parametrize("factor", [1, 0.5])
    def test_expand_rejects_non_growing_factor(self, no_keys, factor):
        with pytest.raises(ValueError):
            run(AIImageService(no_keys, FakeHttp()).expand(make_png(4, 4), factor))


# ══════════════════════════════════════════════════════════════════════════
# HTTP calls
# ══════════════════════════════════════════════════════════════════════════

class TestHttp:

    def test_generate_requests_prompt(self, no_keys):
        http = FakeHttp()
        result = run(AIImageService(no_keys, http).generate("ocean at dawn"))
        method, url, kwargs = http.requests[0]
        assert method == 'GET'
        assert url.endswith("ocean%20at%20dawn")
        assert kwargs['timeout'] == 5
        assert not result.is_mock

    def test_non_2xx_raises(self, no_keys):
        http = FakeHttp(FakeResponse(503, text='overloaded'))
        with pytest.raises(AIServiceError) as info:
            run(AIImageService(no_keys, http).generate("x"))
        assert info.value.operation == 'generate'
        assert '503' in str(info.value)

    def test_timeout_raises(self, no_keys):
        http = FakeHttp(requests.exceptions.ReadTimeout())
        with pytest.raises(AIServiceError, match="timed out"):
            run(AIImageService(no_keys, http).generate("x"))

    def test_network_error_raises(self, no_keys):
        http = FakeHttp(requests.exceptions.ConnectionError("refused"))
        with pytest.raises(AIServiceError, match="network error"):
            run(AIImageService(no_keys, http).generate("x"))

    def test_fill_sends_image_mask_and_prompt(self, hf_keys):
        http = FakeHttp()
        run(AIImageService(hf_keys, http).generative_fill(b'img', b'mask', "a boat"))
        method, url, kwargs = http.requests[0]
        assert method == 'POST'
        assert kwargs['headers']['Authorization'] == 'Bearer hf_test'
        assert set(kwargs['files']) == {'image', 'mask'}
        assert kwargs['data'] == {'prompt': "a boat"}

    def test_background_tries_models_in_order(self, hf_keys):
        http = FakeHttp(FakeResponse(500), FakeResponse(500), FakeResponse(200, content=b'cutout'))
        result = run(AIImageService(hf_keys, http).remove_background(b'img'))
        assert result.data == b'cutout'
        assert [url.rsplit('/models/', 1)[1] for _, url, _ in http.requests] == list(BACKGROUND_MODELS)

    def test_background_all_models_failing_raises(self, hf_keys):
        http = FakeHttp(*[FakeResponse(500)] * len(BACKGROUND_MODELS))
        with pytest.raises(AIServiceError):
            run(AIImageService(hf_keys, http).remove_background(b'img'))

    def test_background_proxy_failure_without_key_raises(self, no_keys):
        no_keys.bg_proxy_url = 'https://proxy.example/remove'
        http = FakeHttp(FakeResponse(502))
        with pytest.raises(AIServiceError):
            run(AIImageService(no_keys, http).remove_background(b'img'))

    def test_enhance_uses_cloudflare_when_configured(self):
        config = AIConfig(cloudflare_account_id='acct', cloudflare_api_key='cf', timeout=5)
        http = FakeHttp(FakeResponse(200, content=b'sharp'))
        result = run(AIImageService(config, http).enhance(b'img'))
        assert result.data == b'sharp'
        assert '/accounts/acct/' in http.requests[0][1]

    def test_enhance_provider_failure_falls_back(self):
        config = AIConfig(cloudflare_account_id='acct', cloudflare_api_key='cf', timeout=5)
        http = FakeHttp(requests.exceptions.ConnectionError("down"))
        result = run(AIImageService(config, http).enhance(make_png(40, 30)))
        assert result.is_mock
        assert size_of(result.data) == (40, 30)
        assert result.message == "Enhance failed, showing a preview"

    def test_expand_provider_failure_falls_back(self, hf_keys):
        http = FakeHttp(FakeResponse(500, text='busy'))
        result = run(AIImageService(hf_keys, http).expand(make_png(100, 60)))
        assert result.is_mock
        assert size_of(result.data) == (150, 90)
        assert result.message == "Expand failed, showing a preview"
        assert len(http.requests) == 1


# ══════════════════════════════════════════════════════════════════════════
# Image helpers
# ══════════════════════════════════════════════════════════════════════════

class TestHelpers:

    def test_outpaint_canvas_centres_original(self):
        image = Image.new('RGBA', (100, 60), (10, 20, 30, 255))
        canvas, mask, offset = build_outpaint_canvas(image, 2)
        assert canvas.size == mask.size == (200, 120)
        assert offset == (50, 30)
        assert mask.getpixel((100, 60)) == 255
        assert mask.getpixel((10, 10)) == 0
        # Padding uses the average colour
        assert canvas.getpixel((5, 5)) == (10, 20, 30, 255)

    def test_placeholder_palette_from_prompt(self):
        image = placeholder_image("deep ocean", size=256)
        assert image.size == (256, 256)
        # Top-left takes the first ocean colour (#667eea)
        assert image.getpixel((0, 0))[:3] == (102, 126, 234)
