import json

import httpx
import pytest

from ieltspeak.errors import StreamError
from ieltspeak.gemini_client import GeminiClient


def _client(handler, model="gemini-test"):
	client = GeminiClient(api_key="test-key", model=model, base_url="https://gemini.test/models/m:generateContent")
	client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
	return client


def _candidate(text):
	return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def test_missing_key_is_a_configuration_error(monkeypatch):
	monkeypatch.setattr("ieltspeak.gemini_client.settings.gemini_api_key", None)
	with pytest.raises(ValueError):
		GeminiClient()


async def test_generate_returns_first_candidate_text():
	seen = []

	def handler(request):
		seen.append(request)
		return httpx.Response(200, json=_candidate("{\"ok\": true}"))

	client = _client(handler)
	try:
		assert await client.generate("score this") == "{\"ok\": true}"
	finally:
		await client.aclose()

	assert seen[0].url.params["key"] == "test-key"
	assert json.loads(seen[0].content)["contents"][0]["parts"][0]["text"] == "score this"


async def test_generate_http_error_without_fallback_raises():
	client = _client(lambda request: httpx.Response(503, text="overloaded"))
	try:
		with pytest.raises(httpx.HTTPStatusError):
			await client.generate("score this")
	finally:
		await client.aclose()


async def test_generate_falls_back_to_openrouter():
	client = _client(lambda request: httpx.Response(500))
	client._fallback_enabled = True
	client._openrouter_api_key = "or-key"
	client._fallback_client = httpx.AsyncClient(
		transport=httpx.MockTransport(
			lambda request: httpx.Response(200, json={"choices": [{"message": {"content": "from fallback"}}]})
		)
	)
	try:
		assert await client.generate("score this") == "from fallback"
	finally:
		await client.aclose()


async def test_stream_generate_yields_sse_parts_in_order():
	body = "".join(
		f"data: {json.dumps(_candidate(text))}\r\n\r\n" for text in ["Well, ", "I grew up ", "by the sea."]
	)
	seen = []

	def handler(request):
		seen.append(request)
		return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

	client = _client(handler)
	try:
		chunks = [chunk async for chunk in client.stream_generate("suggest")]
	finally:
		await client.aclose()

	assert chunks == ["Well, ", "I grew up ", "by the sea."]
	assert seen[0].url.path.endswith(":streamGenerateContent")
	assert seen[0].url.params["alt"] == "sse"


async def test_stream_generate_rejects_malformed_frames():
	client = _client(lambda request: httpx.Response(200, text="data: {not json\n\n"))
	try:
		with pytest.raises(StreamError):
			async for _ in client.stream_generate("suggest"):
				pass
	finally:
		await client.aclose()


async def test_stream_generate_raises_on_error_status():
	client = _client(lambda request: httpx.Response(429, text="rate limited"))
	try:
		with pytest.raises(httpx.HTTPStatusError):
			async for _ in client.stream_generate("suggest"):
				pass
	finally:
		await client.aclose()


async def test_vertex_provider_sends_key_in_header(monkeypatch):
	monkeypatch.setattr("ieltspeak.gemini_client.settings.gemini_provider", "vertex")
	monkeypatch.setattr("ieltspeak.gemini_client.settings.vertex_project", "speak-prod")
	monkeypatch.setattr("ieltspeak.gemini_client.settings.vertex_region", "europe-west4")
	seen = []

	def handler(request):
		seen.append(request)
		return httpx.Response(200, json=_candidate("ok"))

	client = GeminiClient(api_key="vertex-key", model="gemini-test")
	await client._client.aclose()
	client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
	try:
		assert await client.generate("score this") == "ok"
	finally:
		await client.aclose()

	assert seen[0].headers["x-goog-api-key"] == "vertex-key"
	assert "key" not in seen[0].url.params
	assert seen[0].url.host == "europe-west4-aiplatform.googleapis.com"
	assert "/projects/speak-prod/locations/europe-west4/" in seen[0].url.path
	assert client.stream_url.endswith("gemini-test:streamGenerateContent")
