"""Tests for the OpenAI-compatible chat completion client."""

from __future__ import annotations

import json
from unittest.mock import patch

import httpx
import pytest

from src.llm.client import LLMClient, build_messages
from tests.conftest import make_async_client_mock, make_http_response


def _completion_response(content: object, status_code: int = 200):
    resp = make_http_response(status_code, "")
    resp.json.return_value = {"choices": [{"message": {"content": content}}]}
    return resp


class TestBuildMessages:
    def test_system_history_user_order(self) -> None:
        history = [
            {"role": "user", "content": "oi"},
            {"role": "assistant", "content": "olá!"},
        ]
        messages = build_messages("sys", history, "tudo bem?")
        assert messages == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "oi"},
            {"role": "assistant", "content": "olá!"},
            {"role": "user", "content": "tudo bem?"},
        ]


class TestComplete:
    @pytest.mark.asyncio
    async def test_success_returns_text(self) -> None:
        client = LLMClient(api_key="sk-test", model="gpt-test", base_url="https://llm.test/v1/")
        with patch("src.llm.client.httpx.AsyncClient") as mock_client_cls:
            mock_http = make_async_client_mock(_completion_response("  Olá!  "))
            mock_client_cls.return_value = mock_http

            result = await client.complete([{"role": "user", "content": "oi"}])

        assert result.ok is True
        assert result.text == "Olá!"
        call = mock_http.post.call_args
        assert call.args[0] == "https://llm.test/v1/chat/completions"
        assert call.kwargs["headers"]["Authorization"] == "Bearer sk-test"
        assert call.kwargs["json"]["model"] == "gpt-test"
        assert call.kwargs["json"]["messages"] == [{"role": "user", "content": "oi"}]
        assert call.kwargs["timeout"] == 30.0

    @pytest.mark.asyncio
    async def test_http_error_status(self) -> None:
        client = LLMClient(api_key="sk-test")
        with patch("src.llm.client.httpx.AsyncClient") as mock_client_cls:
            mock_client_cls.return_value = make_async_client_mock(
                make_http_response(429, '{"error": "quota"}'),
            )
            result = await client.complete([])

        assert result.ok is False
        assert result.error == "HTTP 429"

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        client = LLMClient(api_key="sk-test")
        with patch("src.llm.client.httpx.AsyncClient") as mock_client_cls:
            mock_client_cls.return_value = make_async_client_mock(
                [httpx.ReadTimeout("slow")],
            )
            result = await client.complete([])

        assert result.ok is False
        assert "ReadTimeout" in (result.error or "")

    @pytest.mark.asyncio
    async def test_malformed_json(self) -> None:
        client = LLMClient(api_key="sk-test")
        resp = make_http_response(200, "not json")
        resp.json.side_effect = json.JSONDecodeError("bad", "not json", 0)
        with patch("src.llm.client.httpx.AsyncClient") as mock_client_cls:
            mock_client_cls.return_value = make_async_client_mock(resp)
            result = await client.complete([])

        assert result.ok is False
        assert result.error == "malformed response"

    @pytest.mark.asyncio
    async def test_missing_choices(self) -> None:
        client = LLMClient(api_key="sk-test")
        resp = make_http_response(200, "{}")
        resp.json.return_value = {"choices": []}
        with patch("src.llm.client.httpx.AsyncClient") as mock_client_cls:
            mock_client_cls.return_value = make_async_client_mock(resp)
            result = await client.complete([])

        assert result.ok is False

    @pytest.mark.asyncio
    async def test_empty_content(self) -> None:
        client = LLMClient(api_key="sk-test")
        with patch("src.llm.client.httpx.AsyncClient") as mock_client_cls:
            mock_client_cls.return_value = make_async_client_mock(_completion_response("   "))
            result = await client.complete([])

        assert result.ok is False
        assert result.error == "empty response"
