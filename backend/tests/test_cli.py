"""Tests for the relcis command-line entry point."""

import json
from unittest.mock import AsyncMock, patch

import pytest

from relcis import cli
from relcis.core.exceptions import AllProvidersExhausted, BlockDetected
from relcis.services.adapters import SearchResult


def test_search_prints_json(capsys):
    results = [SearchResult(title="Hello", url="https://hello.example/")]
    with (
        patch("sys.argv", ["relcis", "search", "hello world"]),
        patch(
            "relcis.services.orchestrator.search_orchestrator.search_web",
            new=AsyncMock(return_value=results),
        ) as search,
    ):
        cli.main()

    search.assert_awaited_once_with("hello world")
    out = json.loads(capsys.readouterr().out)
    assert out == [{"title": "Hello", "url": "https://hello.example/", "description": ""}]


def test_failure_exits_with_code_2(capsys):
    error = AllProvidersExhausted(BlockDetected("CAPTCHA detected on Bing"), ["bing"])
    with (
        patch("sys.argv", ["relcis", "search", "hello"]),
        patch(
            "relcis.services.orchestrator.search_orchestrator.search_web",
            new=AsyncMock(side_effect=error),
        ),
    ):
        with pytest.raises(SystemExit) as exc_info:
            cli.main()

    assert exc_info.value.code == 2
    assert "blocked" in capsys.readouterr().err


def test_no_command_prints_help():
    with patch("sys.argv", ["relcis"]):
        with pytest.raises(SystemExit) as exc_info:
            cli.main()
    assert exc_info.value.code == 1
