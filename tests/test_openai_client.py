import asyncio
import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from worldwiki.core.base import ErrorCode
from worldwiki.core.errors import UpstreamGenerationError
from worldwiki.infrastructure.llm import OpenAIGenerationService
from worldwiki.services.metadata import METADATA_SCHEMA

from .fakes import SERVICE_KEY, make_settings


class FakeCompletions:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.result


def make_service(completions):
    service = OpenAIGenerationService(make_settings())
    service._clients[SERVICE_KEY] = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return service


def message(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def delta(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


async def deltas(*chunks):
    for chunk in chunks:
        yield chunk


def test_structured_request_uses_json_schema():
    completions = FakeCompletions(result=message(json.dumps({"categories": ["Architecture"]})))
    service = make_service(completions)

    data = asyncio.run(
        service.generate_structured("Describe Aethros", METADATA_SCHEMA, system="sys", api_key=SERVICE_KEY)
    )

    assert data == {"categories": ["Architecture"]}
    call = completions.calls[0]
    assert call["messages"] == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "Describe Aethros"},
    ]
    json_schema = call["response_format"]["json_schema"]
    assert json_schema["name"] == "page_metadata"
    assert json_schema["strict"] is True
    assert "title" not in json_schema["schema"]


def test_structured_response_must_be_json():
    service = make_service(FakeCompletions(result=message("not json")))

    with pytest.raises(UpstreamGenerationError) as exc_info:
        asyncio.run(service.generate_structured("p", METADATA_SCHEMA, api_key=SERVICE_KEY))
    assert exc_info.value.code == ErrorCode.UPSTREAM_GENERATION_FAILED


def test_timeouts_are_classified():
    error = openai.APITimeoutError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))
    service = make_service(FakeCompletions(error=error))

    with pytest.raises(UpstreamGenerationError) as exc_info:
        asyncio.run(service.generate_structured("p", METADATA_SCHEMA, api_key=SERVICE_KEY))
    assert exc_info.value.code == ErrorCode.UPSTREAM_TIMEOUT


def test_stream_yields_text_deltas():
    stream = deltas(delta("The "), SimpleNamespace(choices=[]), delta(None), delta("city"))
    completions = FakeCompletions(result=stream)
    service = make_service(completions)

    async def run():
        return [chunk async for chunk in service.generate_stream("p", api_key=SERVICE_KEY)]

    assert asyncio.run(run()) == ["The ", "city"]
    assert completions.calls[0]["stream"] is True
    assert completions.calls[0]["messages"] == [{"role": "user", "content": "p"}]


def test_stream_errors_are_wrapped():
    error = openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))
    service = make_service(FakeCompletions(error=error))

    async def run():
        return [chunk async for chunk in service.generate_stream("p", api_key=SERVICE_KEY)]

    with pytest.raises(UpstreamGenerationError) as exc_info:
        asyncio.run(run())
    assert exc_info.value.code == ErrorCode.UPSTREAM_GENERATION_FAILED
