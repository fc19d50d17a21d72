"""Unit tests for CLI commands."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from llmgate.cli import cli, get_time, get_weather
from llmgate.models.completion import Completion
from llmgate.models.conversation import ToolCallRequest


class TestDemoTools:
    def test_get_weather_default_unit(self):
        result = get_weather("Tokyo, Japan")
        assert "Tokyo, Japan" in result
        assert "celsius" in result

    def test_get_time_utc(self):
        assert get_time().endswith("+00:00")

    def test_get_time_unknown_zone(self):
        with pytest.raises(ValueError, match="Unknown timezone"):
            get_time("Mars/Olympus_Mons")


class TestCountTokensCommand:
    @patch("llmgate.tokens.count_tokens", return_value=4)
    def test_counts_text(self, mock_count):
        runner = CliRunner()
        result = runner.invoke(cli, ["count-tokens", "hello brave new world"])

        assert result.exit_code == 0
        assert "Tokens:" in result.output
        assert "4" in result.output
        mock_count.assert_called_once_with("hello brave new world", encoding_name="cl100k_base")

    @patch("llmgate.tokens.count_tokens", return_value=2)
    def test_counts_file(self, mock_count, tmp_path):
        path = tmp_path / "prompt.txt"
        path.write_text("from file", encoding="utf-8")

        runner = CliRunner()
        result = runner.invoke(cli, ["count-tokens", "--file", str(path), "--encoding", "o200k_base"])

        assert result.exit_code == 0
        mock_count.assert_called_once_with("from file", encoding_name="o200k_base")

    def test_requires_input(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["count-tokens"])
        assert result.exit_code != 0


class TestSchemaCommand:
    def test_function_descriptor(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["schema", "llmgate.cli:get_weather"])

        assert result.exit_code == 0
        document = json.loads(result.output)
        assert document["type"] == "function"
        assert document["function"]["name"] == "get_weather"
        assert document["function"]["parameters"]["required"] == ["location"]
        assert "Args:" not in document["function"]["description"]
        assert document["function"]["parameters"]["properties"]["location"]["description"].startswith("The city")

    def test_model_schema(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["schema", "llmgate.models.completion:Usage"])

        assert result.exit_code == 0
        document = json.loads(result.output)
        assert set(document["properties"]) == {"prompt", "completion", "total"}

    def test_bad_target(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["schema", "llmgate.cli"])
        assert result.exit_code != 0
        assert "MODULE:OBJECT" in result.output

    def test_missing_attribute(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["schema", "llmgate.cli:does_not_exist"])
        assert result.exit_code != 0


class TestChatCommand:
    def test_runs_exchange_with_demo_tools(self, scripted_provider):
        provider = scripted_provider(
            [
                Completion(
                    tool_calls=[ToolCallRequest(name="get_weather", arguments='{"location": "Paris"}')],
                    finish_reason="tool_calls",
                ),
                Completion(content="Paris is sunny.", finish_reason="stop"),
            ]
        )

        runner = CliRunner()
        with patch("llmgate.providers.create_provider", return_value=provider):
            result = runner.invoke(cli, ["chat", "Weather in Paris?"])

        assert result.exit_code == 0, result.output
        assert "Paris is sunny." in result.output
        assert "get_weather" in result.output
        assert provider.tools_offered[0] == ["get_weather", "get_time"]

    def test_chained_mode_with_max_tokens(self, scripted_provider):
        provider = scripted_provider(
            [
                Completion(
                    tool_calls=[
                        ToolCallRequest(
                            name="chained_tool",
                            arguments={"tool_name": "get_weather", "instructions": "Weather in Paris"},
                        )
                    ],
                    finish_reason="tool_calls",
                ),
                Completion(tool_calls=[ToolCallRequest(name="get_weather", arguments={"location": "Paris"})]),
                Completion(content="Paris is sunny.", finish_reason="stop"),
            ]
        )

        runner = CliRunner()
        with patch("llmgate.providers.create_provider", return_value=provider):
            result = runner.invoke(cli, ["chat", "Weather in Paris?", "--chained", "--max-tokens", "128"])

        assert result.exit_code == 0, result.output
        assert "Paris is sunny." in result.output
        assert provider.tools_offered == [["chained_tool"], ["get_weather"], ["chained_tool"]]
        assert provider.extensions[0].max_tokens == 128

    def test_provider_error_exits_nonzero(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["chat", "hello", "--provider", "noop"])

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_unknown_provider(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["chat", "hello", "--provider", "nope"])
        assert result.exit_code != 0
