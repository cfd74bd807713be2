from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from nanostudio.core.exceptions import GenerationRefusedError, InputValidationError
from nanostudio.schemas.generate import GenerateRequest, Quality, TaskState
from nanostudio.services.credentials import CredentialPool
from nanostudio.services.gemini_image import GeminiImageService
from nanostudio.services.seed import fixed_seed
from tests.conftest import PNG_DATA_URI, RecordingSleep


def image_response(data=b"\x89PNG"):
    part = SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type="image/png"), text=None)
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]), finish_reason="STOP")])


def text_response(text):
    part = SimpleNamespace(inline_data=None, text=text)
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]), finish_reason="STOP")])


class StubModels:
    """Plays back scripted outcomes for client.aio.models.generate_content."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def generate_content(self, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_service(outcomes, keys=("k1", "k2", "k3"), max_retries=3):
    models = StubModels(outcomes)
    keys_used = []

    def factory(key):
        keys_used.append(key)
        return SimpleNamespace(aio=SimpleNamespace(models=models))

    sleep = RecordingSleep()
    service = GeminiImageService(
        credentials=CredentialPool(list(keys), name="Gemini"),
        model_name="gemini-test",
        max_retries=max_retries,
        initial_backoff=1.5,
        retry_delay=1.0,
        client_factory=factory,
        sleep=sleep,
    )
    return service, models, keys_used, sleep


class TestRetryPolicy:
    def test_rate_limited_attempts_rotate_keys_and_back_off(self):
        service, models, keys_used, sleep = make_service([
            Exception("429 RESOURCE_EXHAUSTED"),
            Exception("503 UNAVAILABLE: The model is overloaded"),
            image_response(),
        ])

        result = asyncio.run(service.generate(GenerateRequest(prompt="a cat")))

        assert result.status is TaskState.COMPLETED
        assert result.image.startswith("data:image/png;base64,")
        assert keys_used == ["k1", "k2", "k3"]
        assert sleep.delays == [1.5, 3.0]
        assert len(models.calls) == 3

    def test_other_errors_use_fixed_delay(self):
        service, _, keys_used, sleep = make_service([ValueError("connection reset"), image_response()])

        asyncio.run(service.generate(GenerateRequest(prompt="a cat")))

        assert sleep.delays == [1.0]
        assert keys_used == ["k1", "k2"]

    def test_exhaustion_raises_last_error(self):
        service, models, _, sleep = make_service(
            [ValueError("bad 0"), ValueError("bad 1"), ValueError("bad 2")], max_retries=2
        )

        with pytest.raises(ValueError, match="bad 2"):
            asyncio.run(service.generate(GenerateRequest(prompt="a cat")))
        assert len(models.calls) == 3
        assert len(sleep.delays) == 2

    def test_refusal_text_surfaces_as_error(self):
        service, _, _, _ = make_service(
            [text_response("I can't help with that."), text_response("I can't help with that.")], max_retries=1
        )

        with pytest.raises(GenerationRefusedError, match="I can't help with that."):
            asyncio.run(service.generate(GenerateRequest(prompt="something")))

    def test_is_rate_limited(self):
        assert GeminiImageService.is_rate_limited(Exception("Error 429 Too Many Requests"))
        assert GeminiImageService.is_rate_limited(SimpleNamespace(code=503))
        assert not GeminiImageService.is_rate_limited(Exception("invalid argument"))


class TestRequestBuilding:
    def test_empty_prompt_rejected_before_any_call(self):
        service, models, _, _ = make_service([image_response()])

        with pytest.raises(InputValidationError):
            asyncio.run(service.generate(GenerateRequest(prompt="")))
        assert models.calls == []

    def test_compose_prompt_with_style_and_fixed_objects(self):
        request = GenerateRequest(prompt="a cat", style="Anime", fixed_objects={"hat": True, "dog": False})
        assert GeminiImageService.compose_prompt(request) == "a cat\n\nStyle: Anime\nKeep fixed: hat"

    def test_compose_prompt_edit_mode(self):
        request = GenerateRequest(edit_instruction="make it blue", edit_image=PNG_DATA_URI)
        assert GeminiImageService.compose_prompt(request) == "Edit this image: make it blue"

    def test_fixed_seed_passed_to_config(self):
        service, models, _, _ = make_service([image_response()])
        request = GenerateRequest(prompt="a cat", style="Anime", fixed_seed=True)

        asyncio.run(service.generate(request))

        expected = fixed_seed(GeminiImageService.compose_prompt(request), "Anime")
        assert service.seed_for(request) == expected
        assert models.calls[0]["config"].seed == expected

    def test_no_seed_unless_requested(self):
        service, models, _, _ = make_service([image_response()])
        asyncio.run(service.generate(GenerateRequest(prompt="a cat")))
        assert models.calls[0]["config"].seed is None

    def test_reference_images_sent_as_inline_parts(self):
        service, models, _, _ = make_service([image_response()])

        asyncio.run(service.generate(GenerateRequest(prompt="a cat", reference_images=[PNG_DATA_URI])))

        parts = models.calls[0]["contents"][0].parts
        assert len(parts) == 2
        assert parts[1].inline_data.mime_type == "image/png"

    def test_image_size_tiers(self):
        assert GeminiImageService.image_size_for(Quality.BASE_1K) == "1K"
        assert GeminiImageService.image_size_for(Quality.ULTRA_4K) == "2K"

    def test_enhance_runs_an_edit_pass(self):
        service, models, _, _ = make_service([image_response()])

        result = asyncio.run(service.enhance(PNG_DATA_URI, Quality.ULTRA_4K, "16:9"))

        assert result.status is TaskState.COMPLETED
        text = models.calls[0]["contents"][0].parts[0].text
        assert text.startswith("Edit this image: Enhance to 4K")
