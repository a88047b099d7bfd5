"""AsyncOracleClient のテスト。"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

from oracleworld import AsyncOracleClient, HistoryStore
from oracleworld.errors import OracleAuthError, OracleValidationError


def _json_response(request: httpx.Request, payload: object, *, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code=status_code,
        content=json.dumps(payload).encode("utf-8"),
        headers={"content-type": "application/json"},
        request=request,
    )


def _chat_payload(text: str) -> dict[str, object]:
    return {"id": "gen", "choices": [{"message": {"content": text}}], "usage": {"total_tokens": 10}}


async def _no_wait(seconds: float) -> None:
    return None


def test_generate_text_goes_through_queue_and_history(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.host == "openrouter.ai"
        prompt = json.loads(request.content)["messages"][-1]["content"]
        return _json_response(request, _chat_payload(f"echo {prompt}"))

    async def run() -> list[str]:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        async with AsyncOracleClient(
            api_keys={"openrouter": "sk-or"},
            http_client=http_client,
            history_path=tmp_path / "history.json",
        ) as client:
            results = [
                await client.generate_text("openrouter", prompt="one", model="gpt-3.5-turbo", tags=["a"]),
                await client.generate_text("openrouter", prompt="two", model="gpt-3.5-turbo"),
            ]
            assert client.queue_length == 0
            assert client.history is not None
            assert [entry["prompt"] for entry in client.history.all()] == ["two", "one"]
            assert client.history.filter(tags=["a"])[0]["text"] == "echo one"
        assert http_client.is_closed is False
        await http_client.aclose()
        return [result.text for result in results]

    with patch("oracleworld.scheduler._wait", new=_no_wait):
        texts = asyncio.run(run())

    assert texts == ["echo one", "echo two"]
    assert len(HistoryStore(tmp_path / "history.json")) == 2


def test_executor_rate_limit_escalates_to_queue_requeue() -> None:
    counter = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        counter["n"] += 1
        if counter["n"] <= 2:
            return _json_response(request, {"error": "slow"}, status_code=429)
        return _json_response(request, _chat_payload("done"))

    async def run() -> str | None:
        async with AsyncOracleClient(
            api_keys={"openai": "sk-oa"},
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            retry_max_retries=1,
        ) as client:
            result = await client.generate_text("openai", prompt="hi", model="gpt-4")
            return result.text

    with (
        patch("oracleworld.services._transport._wait", new=_no_wait),
        patch("oracleworld.scheduler._wait", new=_no_wait),
    ):
        text = asyncio.run(run())

    assert text == "done"
    assert counter["n"] == 3


def test_auth_error_reaches_caller_once() -> None:
    counter = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        counter["n"] += 1
        return _json_response(request, {"error": "bad key"}, status_code=401)

    async def run() -> None:
        async with AsyncOracleClient(
            api_keys={"anthropic": "bad"},
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        ) as client:
            await client.generate_text("anthropic", prompt="hi", model="claude-3-haiku")

    with pytest.raises(OracleAuthError):
        asyncio.run(run())

    assert counter["n"] == 1


def test_missing_credentials_and_unknown_provider() -> None:
    async def run(provider: str) -> None:
        async with AsyncOracleClient(api_keys={}) as client:
            await client.generate_image(provider, prompt="x", model="dall-e-3")

    with pytest.raises(OracleValidationError):
        asyncio.run(run("openai"))
    with pytest.raises(OracleValidationError):
        asyncio.run(run("gemini"))


def test_from_env_and_available_providers() -> None:
    environ = {
        "ORACLEWORLD_OPENAI_API_KEY": "sk-oa",
        "ORACLEWORLD_STABLE_DIFFUSION_API_KEY": "sd",
        "ORACLEWORLD_ANTHROPIC_API_KEY": "",
    }

    async def run() -> list[str]:
        async with AsyncOracleClient.from_env(environ) as client:
            return [info.id for info in client.available_providers()]

    assert asyncio.run(run()) == ["openai", "stable-diffusion"]


def test_estimate_cost_needs_no_credentials() -> None:
    async def run() -> str | None:
        async with AsyncOracleClient() as client:
            return client.estimate_cost("openai", model="dall-e-2", count=2).cost

    assert asyncio.run(run()) == "0.0400"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"retry_max_retries": -1},
        {"retry_base_delay": -0.5},
        {"retry_jitter_span": -1.0},
        {"timeout": 0},
        {"max_requeues": -1},
    ],
)
def test_invalid_client_options(kwargs: dict[str, float]) -> None:
    with pytest.raises(ValueError):
        AsyncOracleClient(**kwargs)


class _UnwritableHistory(HistoryStore):
    def _flush(self) -> None:
        raise PermissionError(13, "Permission denied", "history.json")


def test_history_write_failure_keeps_successful_result(caplog: pytest.LogCaptureFixture) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return _json_response(request, _chat_payload("kept"))

    async def run() -> str | None:
        async with AsyncOracleClient(
            api_keys={"openai": "sk-oa"},
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            history=_UnwritableHistory(),
        ) as client:
            result = await client.generate_text("openai", prompt="hi", model="gpt-4")
            return result.text

    with caplog.at_level("WARNING", logger="oracleworld.client"):
        text = asyncio.run(run())

    assert text == "kept"
    assert "not recorded in history" in caplog.text
