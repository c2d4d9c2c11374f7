# tests/conftest.py
import json
from typing import List
from unittest.mock import AsyncMock

import pytest

from application.services.search_service import VibeSearchClient
from configs.search_config import VibeSearchConfig
from domain.ports.llm_port import LLMPort, LLMResponse


def reply(positions: List[int]) -> LLMResponse:
    return LLMResponse({LLMResponse.TEXT_KEY: json.dumps({"result": positions})})


def local_oracle_answer(frame_text: str) -> List[int]:
    """Answer a literal/hash frame the way a perfect oracle would."""
    lines = frame_text.split("\n")
    delimiter, target = lines[0], lines[1][len("find "):]
    matches = []
    for index in range(2, len(lines) - 1, 2):
        assert lines[index] == delimiter
        position, _, value = lines[index + 1].partition(",")
        if value == target:
            matches.append(int(position))
    return matches


@pytest.fixture
def search_config():
    return VibeSearchConfig(model="gpt-4o-mini", temperature=0.0, api_key="sk-test")


@pytest.fixture
def mock_transport():
    mock = AsyncMock(spec=LLMPort)
    mock.call_llm_async.return_value = reply([])
    return mock


@pytest.fixture
def local_oracle_transport(mock_transport):
    async def answer(prompt, **kwargs):
        return reply(local_oracle_answer(prompt))

    mock_transport.call_llm_async.side_effect = answer
    return mock_transport


@pytest.fixture
def client(mock_transport, search_config):
    return VibeSearchClient(mock_transport, search_config)


@pytest.fixture
def make_reply():
    return reply
