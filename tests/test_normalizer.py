from __future__ import annotations

import json
from types import SimpleNamespace

import pytest

from nanostudio.core.exceptions import InputValidationError
from nanostudio.schemas.generate import TaskState
from nanostudio.services.normalizer import (
    EMPTY_RESULT_REASON,
    extract_result_url,
    is_data_uri,
    normalize_gemini_response,
    normalize_record_info,
    split_data_uri,
    to_data_uri,
)


def _gemini_response(*parts, finish_reason="STOP"):
    content = SimpleNamespace(parts=list(parts))
    return SimpleNamespace(candidates=[SimpleNamespace(content=content, finish_reason=finish_reason)])


def _image_part(data=b"\x89PNG", mime_type="image/png"):
    return SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type), text=None)


def _text_part(text):
    return SimpleNamespace(inline_data=None, text=text)


class TestDataUris:
    def test_split(self):
        data, mime = split_data_uri("data:image/jpeg;base64,aGVsbG8=")
        assert data == b"hello"
        assert mime == "image/jpeg"

    def test_split_rejects_plain_text(self):
        with pytest.raises(InputValidationError):
            split_data_uri("not a data uri")

    @pytest.mark.parametrize("payload", ["@@@@", "abcd$$$$", "aGVs bG8="])
    def test_split_rejects_non_base64_characters(self, payload):
        with pytest.raises(InputValidationError, match="Invalid base64"):
            split_data_uri(f"data:image/png;base64,{payload}")

    def test_split_rejects_empty_payload(self):
        with pytest.raises(InputValidationError):
            split_data_uri("data:image/png;base64,")

    def test_to_data_uri_from_bytes(self):
        assert to_data_uri(b"hello", "image/png") == "data:image/png;base64,aGVsbG8="
        assert is_data_uri(to_data_uri(b"x"))
        assert not is_data_uri("https://example.com/a.png")


class TestExtractResultUrl:
    def test_stringified_result_urls(self):
        assert extract_result_url(json.dumps({"resultUrls": ["https://cdn/a.png"]})) == "https://cdn/a.png"

    def test_images_variant_with_objects(self):
        assert extract_result_url({"images": [{"url": "https://cdn/b.png"}]}) == "https://cdn/b.png"

    def test_result_urls_take_precedence(self):
        payload = {"resultUrls": ["https://cdn/a.png"], "images": ["https://cdn/b.png"]}
        assert extract_result_url(payload) == "https://cdn/a.png"

    def test_garbage(self):
        assert extract_result_url("{not json") is None
        assert extract_result_url(None) is None
        assert extract_result_url({"resultUrls": []}) is None


class TestNormalizeRecordInfo:
    def test_success(self):
        result = normalize_record_info({
            "state": "success",
            "resultJson": json.dumps({"resultUrls": ["https://cdn/a.png"]}),
        })
        assert result.status is TaskState.COMPLETED
        assert result.image == "https://cdn/a.png"

    def test_success_without_image_is_failure(self):
        result = normalize_record_info({"state": "success", "resultJson": json.dumps({"resultUrls": []})})
        assert result.status is TaskState.FAILED
        assert result.image is None
        assert result.fail_reason == EMPTY_RESULT_REASON

    def test_success_without_result_json_is_failure(self):
        assert normalize_record_info({"state": "success"}).status is TaskState.FAILED

    @pytest.mark.parametrize("state", ["fail", "failed", "generate_failed", "create_task_failed"])
    def test_failure_states(self, state):
        result = normalize_record_info({"state": state, "failMsg": "NSFW content"})
        assert result.status is TaskState.FAILED
        assert result.fail_reason == "NSFW content"

    def test_failure_without_message(self):
        assert normalize_record_info({"state": "fail"}).fail_reason == "Generation failed"

    def test_generating_is_pending(self):
        result = normalize_record_info({"state": "generating"})
        assert result.status is TaskState.PENDING
        assert result.progress == "Running"
        assert not result.is_terminal

    def test_waiting_is_pending(self):
        assert normalize_record_info({"state": "waiting"}).status is TaskState.PENDING


class TestNormalizeGeminiResponse:
    def test_inline_image(self):
        result = normalize_gemini_response(_gemini_response(_text_part("Here you go"), _image_part()))
        assert result.status is TaskState.COMPLETED
        assert result.image.startswith("data:image/png;base64,")

    def test_url_text_is_image(self):
        result = normalize_gemini_response(_gemini_response(_text_part("https://cdn/c.png")))
        assert result.status is TaskState.COMPLETED
        assert result.image == "https://cdn/c.png"

    def test_other_text_is_refusal(self):
        result = normalize_gemini_response(_gemini_response(_text_part("I can't draw that.")))
        assert result.status is TaskState.FAILED
        assert result.fail_reason == "I can't draw that."

    def test_no_candidates(self):
        result = normalize_gemini_response(SimpleNamespace(candidates=[]))
        assert result.status is TaskState.FAILED

    def test_no_parts_reports_finish_reason(self):
        result = normalize_gemini_response(_gemini_response(finish_reason="SAFETY"))
        assert result.status is TaskState.FAILED
        assert "SAFETY" in result.fail_reason
