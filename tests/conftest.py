"""Shared fixtures: a fake Gemini client, a mocked outbound HTTP client and the app."""

from __future__ import annotations

from typing import Any, Callable

import httpx
import pytest
from fastapi.testclient import TestClient
from google.genai import types

import config
import gemini_gateway
import main
from http_client import build_async_client


def make_response(text: str) -> types.GenerateContentResponse:
    return types.GenerateContentResponse(
        candidates=[
            types.Candidate(
                content=types.Content(role="model", parts=[types.Part(text=text)]),
            )
        ]
    )


class FakeModels:
    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.response: Any = make_response("A short clip of a cat.")
        self.error: Exception | None = None

    def generate_content(self, *, model: str, contents: Any, config: Any = None) -> Any:
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        return self.response


class FakeGeminiClient:
    def __init__(self) -> None:
        self.models = FakeModels()


@pytest.fixture
def fake_gemini(monkeypatch: pytest.MonkeyPatch) -> FakeModels:
    fake = FakeGeminiClient()
    monkeypatch.setattr(gemini_gateway, "client", fake)
    return fake.models


@pytest.fixture
def mock_http(monkeypatch: pytest.MonkeyPatch) -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Install an outbound client whose requests are answered by `handler`."""

    def install(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        client = build_async_client(transport=httpx.MockTransport(handler))
        monkeypatch.setattr(main, "http_client", client)
        return client

    return install


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.setattr(config, "MARKDOWN_RESHAPE", True)
    return TestClient(main.app)
