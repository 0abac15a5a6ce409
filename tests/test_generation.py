"""Tests for the text-generation collaborator helpers."""

import pytest

from brand_crawler.errors import CollaboratorError
from brand_crawler.generation import (
    MLXTextGenerator,
    call_generator,
    parse_json_response,
    strip_code_fence,
)


class SyncGenerator:
    def __init__(self, result):
        self.result = result

    def generate(self, prompt, agent_type):
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class AsyncGenerator:
    async def generate(self, prompt, agent_type):
        return f"{agent_type}:{prompt}"


def test_strip_code_fence():
    assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fence('```\n{"a": 1}') == '{"a": 1}'
    assert strip_code_fence('  {"a": 1}  ') == '{"a": 1}'


@pytest.mark.parametrize(
    "text, expected",
    [
        ('{"tone": ["warm"]}', {"tone": ["warm"]}),
        ('```json\n{"tone": ["warm"]}\n```', {"tone": ["warm"]}),
        ('Sure! Here it is: {"style": "formal"} Hope that helps.', {"style": "formal"}),
        ("[1, 2, 3]", None),
        ("no json here", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_json_response(text, expected):
    assert parse_json_response(text) == expected


@pytest.mark.asyncio
async def test_call_generator_sync_and_async():
    assert await call_generator(SyncGenerator("hello"), "p", "brand") == "hello"
    assert await call_generator(AsyncGenerator(), "p", "doc") == "doc:p"


@pytest.mark.asyncio
async def test_call_generator_wraps_failures():
    with pytest.raises(CollaboratorError, match="brand generation failed"):
        await call_generator(SyncGenerator(RuntimeError("model crashed")), "p", "brand")


@pytest.mark.asyncio
async def test_call_generator_rejects_non_text():
    with pytest.raises(CollaboratorError):
        await call_generator(SyncGenerator({"not": "text"}), "p", "brand")


def test_model_dir_override(tmp_path, monkeypatch):
    generator = MLXTextGenerator("mlx-community/some-model", max_tokens=64)

    monkeypatch.setenv("MODEL_DIR", str(tmp_path))
    assert generator._resolve_load_target() == str(tmp_path)

    monkeypatch.setenv("MODEL_DIR", str(tmp_path / "missing"))
    assert generator._resolve_load_target() == "mlx-community/some-model"
