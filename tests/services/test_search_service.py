"""
VibeSearchClient tests. Run with:

python -m pytest tests/services/test_search_service.py -v
"""
import json
import logging

import httpx
import pytest

from application.services.search_errors import QueryError, SearchErrorCode
from application.services.search_service import PROMPT_CACHE_KEY, SYSTEM_PROMPT, VibeSearchClient
from configs.search_config import VibeSearchConfig
from domain.ports.llm_port import LLMResponse
from domain.protocol.digests import stable_hash
from domain.protocol.errors import EncodingError
from domain.protocol.strategies import EncodingStrategy
from infrastructure.llm.exceptions import (
    LLMAuthenticationError,
    LLMConfigurationError,
    LLMProviderError,
    LLMTimeoutError,
)


class TestQuery:

    @pytest.mark.asyncio
    async def test_returns_oracle_positions(self, client, mock_transport, make_reply):
        mock_transport.call_llm_async.return_value = make_reply([2, 0, 2])
        assert await client.query("frame") == [2, 0, 2]

    @pytest.mark.asyncio
    async def test_sends_fixed_system_prompt_and_schema(self, client, mock_transport):
        await client.query("frame")

        args, kwargs = mock_transport.call_llm_async.call_args
        assert args == ("frame",)
        assert kwargs["system_prompt"] == SYSTEM_PROMPT
        assert kwargs["response_format"]["type"] == "json_schema"
        assert kwargs["response_format"]["json_schema"]["strict"] is True
        assert kwargs["settings"] == {"model": "gpt-4o-mini", "temperature": 0.0}

    @pytest.mark.asyncio
    async def test_caching_sends_prompt_cache_key(self, mock_transport, search_config):
        client = VibeSearchClient(mock_transport, search_config.with_caching(True))
        await client.query("frame")
        settings = mock_transport.call_llm_async.call_args.kwargs["settings"]
        assert settings["prompt_cache_key"] == PROMPT_CACHE_KEY

    @pytest.mark.asyncio
    async def test_no_cache_key_by_default(self, client, mock_transport):
        await client.query("frame")
        assert "prompt_cache_key" not in mock_transport.call_llm_async.call_args.kwargs["settings"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "failure",
        [
            LLMTimeoutError("timed out"),
            LLMAuthenticationError("bad key"),
            LLMProviderError("server error", status_code=500),
            RuntimeError("unexpected"),
        ],
    )
    async def test_transport_failure_yields_empty(self, client, mock_transport, failure):
        mock_transport.call_llm_async.side_effect = failure
        assert await client.query("frame") == []
        assert client.get_stats()["failure_count"] == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "text",
        ["", "index 3", '{"result": [-1]}', '{"result": ["a"]}', '{"matches": [1]}'],
    )
    async def test_unusable_reply_yields_empty(self, client, mock_transport, text):
        mock_transport.call_llm_async.return_value = LLMResponse({LLMResponse.TEXT_KEY: text})
        assert await client.query("frame") == []

    @pytest.mark.asyncio
    async def test_failure_is_logged(self, client, mock_transport, caplog):
        mock_transport.call_llm_async.side_effect = LLMTimeoutError("timed out")
        with caplog.at_level(logging.WARNING, logger="application.services.search_service"):
            await client.query("frame")
        assert "VS_005" in caplog.text
        assert "timed out" in caplog.text


class TestQueryChecked:

    @pytest.mark.asyncio
    async def test_transport_error_classified(self, client, mock_transport):
        mock_transport.call_llm_async.side_effect = LLMAuthenticationError("bad key")
        with pytest.raises(QueryError) as err:
            await client.query_checked("frame")
        assert err.value.code is SearchErrorCode.AUTHENTICATION_FAILED
        assert isinstance(err.value.cause, LLMAuthenticationError)

    @pytest.mark.asyncio
    async def test_invalid_reply_classified(self, client, mock_transport):
        mock_transport.call_llm_async.return_value = LLMResponse({LLMResponse.TEXT_KEY: "nope"})
        with pytest.raises(QueryError) as err:
            await client.query_checked("frame")
        assert err.value.code is SearchErrorCode.RESPONSE_INVALID


class TestFind:

    @pytest.mark.asyncio
    async def test_find_literal(self, client, local_oracle_transport):
        assert await client.find(["foo", "bar", "foobar"], "bar") == [1]
        assert await client.find(["a", "b", "a"], "a") == [0, 2]
        assert await client.find(["a", "b"], "z") == []

    @pytest.mark.asyncio
    async def test_find_empty_collection(self, client, local_oracle_transport):
        assert await client.find([], "x") == []
        prompt = local_oracle_transport.call_llm_async.call_args.args[0]
        assert prompt.split("\n")[1] == "find x"

    @pytest.mark.asyncio
    async def test_find_hash(self, client, local_oracle_transport):
        assert await client.find_hash([123, 53, 351, 412], 53) == [1]
        prompt = local_oracle_transport.call_llm_async.call_args.args[0]
        lines = prompt.split("\n")
        assert lines[0] == "#"
        assert lines[5] == f"1,{stable_hash(53)}"

    @pytest.mark.asyncio
    async def test_find_sha256(self, client, local_oracle_transport):
        assert await client.find_sha256([bytes([1]), bytes([2]), bytes([3])], bytes([2])) == [1]

    @pytest.mark.asyncio
    async def test_find_serde(self, client, local_oracle_transport):
        data = [{"id": 1}, {"id": 2}, {"id": 1}]
        assert await client.find_serde(data, {"id": 1}) == [0, 2]

    @pytest.mark.asyncio
    async def test_find_with_strategy_name(self, client, local_oracle_transport):
        assert await client.find_with("hash", ["x", "y"], "y") == [1]

    @pytest.mark.asyncio
    async def test_encoding_failure_yields_empty_without_query(self, client, mock_transport):
        assert await client.find_serde([1, object()], 1) == []
        assert await client.find_sha256(["text"], b"x") == []
        mock_transport.call_llm_async.assert_not_called()
        assert client.get_stats()["failure_count"] == 2

    @pytest.mark.asyncio
    async def test_oracle_answer_is_passed_through_unchanged(self, client, mock_transport, make_reply):
        # positions outside the collection are not filtered
        mock_transport.call_llm_async.return_value = make_reply([9, 1, 1])
        assert await client.find(["a", "b"], "b") == [9, 1, 1]

    def test_encode_checked_raises(self, client):
        with pytest.raises(EncodingError) as err:
            client.encode_checked([b"a", "b"], b"a", EncodingStrategy.CRYPTO_HASH)
        assert err.value.position == 1

    def test_find_sync(self, client, local_oracle_transport):
        assert client.find_sync(["a", "b", "c"], "c") == [2]

    def test_query_sync(self, client, mock_transport, make_reply):
        mock_transport.call_llm_async.return_value = make_reply([4])
        assert client.query_sync("frame") == [4]


class TestConstruction:

    def test_from_env_without_key(self, monkeypatch):
        monkeypatch.delenv("VS_MISSING_KEY", raising=False)
        with pytest.raises(LLMConfigurationError):
            VibeSearchClient.from_env(VibeSearchConfig(api_key_env="VS_MISSING_KEY"))

    def test_from_env_with_key(self, monkeypatch):
        monkeypatch.setenv("VS_PRESENT_KEY", "sk-env")
        client = VibeSearchClient.from_env(VibeSearchConfig(api_key_env="VS_PRESENT_KEY"))
        assert client.transport.api_key == "sk-env"

    def test_from_config_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("VS_FILE_KEY", "sk-file")
        path = tmp_path / "search.yaml"
        path.write_text("vibesearch:\n  model: gpt-4.1\n  api_key_env: VS_FILE_KEY\n", encoding="utf-8")
        client = VibeSearchClient.from_config_file(path)
        assert client.config.model == "gpt-4.1"
        assert client.transport.model == "gpt-4.1"

    @pytest.mark.asyncio
    async def test_end_to_end_over_http(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            body = {"choices": [{"message": {"role": "assistant", "content": '{"result": [1]}'}}]}
            return httpx.Response(200, json=body)

        client = VibeSearchClient.from_api_key(
            "sk-direct",
            VibeSearchConfig(model="gpt-4o-mini", max_tokens=64),
            http_transport=httpx.MockTransport(handler),
        )
        assert await client.find(["foo", "bar", "foobar"], "bar") == [1]

        payload = seen[0]
        assert payload["model"] == "gpt-4o-mini"
        assert payload["max_tokens"] == 64
        assert payload["messages"][0]["content"] == SYSTEM_PROMPT
        assert payload["messages"][1]["content"].split("\n")[1] == "find bar"
        assert payload["response_format"]["json_schema"]["schema"]["required"] == ["result"]

    @pytest.mark.asyncio
    async def test_end_to_end_http_failure(self):
        client = VibeSearchClient.from_api_key(
            "sk-direct",
            http_transport=httpx.MockTransport(lambda request: httpx.Response(401, json={"error": {"message": "bad"}})),
        )
        assert await client.find(["a"], "a") == []


class _Unprintable:
    def __str__(self):
        raise ValueError("boom")


class TestHostileInput:

    @pytest.mark.asyncio
    async def test_deeply_nested_reply_yields_empty(self, client, mock_transport):
        mock_transport.call_llm_async.return_value = LLMResponse({LLMResponse.TEXT_KEY: "[" * 100000 + "]" * 100000})
        assert await client.query("frame") == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", [{"result": [1]}, [1], 7])
    async def test_non_text_reply_yields_empty(self, client, mock_transport, text):
        mock_transport.call_llm_async.return_value = LLMResponse({LLMResponse.TEXT_KEY: text})
        assert await client.query("frame") == []

    @pytest.mark.asyncio
    async def test_non_mapping_response_is_classified(self, client, mock_transport):
        mock_transport.call_llm_async.return_value = None
        with pytest.raises(QueryError) as err:
            await client.query_checked("frame")
        assert err.value.code is SearchErrorCode.RESPONSE_INVALID
        assert await client.query("frame") == []

    @pytest.mark.asyncio
    async def test_failing_str_yields_empty_without_query(self, client, mock_transport):
        assert await client.find(["a", _Unprintable()], "a") == []
        mock_transport.call_llm_async.assert_not_called()
        assert client.get_stats()["failure_count"] == 1

    @pytest.mark.asyncio
    async def test_failing_collection_traversal_yields_empty(self, client, mock_transport):
        def broken():
            yield "a"
            raise RuntimeError("source went away")

        assert await client.find(broken(), "a") == []
        mock_transport.call_llm_async.assert_not_called()

    @pytest.mark.asyncio
    async def test_failing_str_in_batch_only_affects_its_target(self, client, local_oracle_transport):
        assert await client.find_batch(["a", "b"], [_Unprintable(), "b"]) == [[], [1]]

    @pytest.mark.asyncio
    async def test_unknown_strategy_is_a_caller_error(self, client):
        with pytest.raises(ValueError):
            await client.find_with("bincode", ["a"], "a")
