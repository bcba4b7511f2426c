"""
Unit Tests for CLI

Tests the data-agent CLI commands.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from data_agent.cli import cli
from data_agent.models.errors import CompletionError, ExecutionError
from data_agent.models.pipeline import ChartType, PipelineOutcome, QueryResult


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def cli_pipeline(album_schema):
    pipeline = MagicMock()
    pipeline.run = AsyncMock(
        return_value=PipelineOutcome(
            answer="Hardwired... to Self-Destruct came out in 2016.",
            sql="SELECT ttle FROM albm WHERE col1 = 2016;",
            chart_type=ChartType.BAR,
            result=QueryResult(
                sql="SELECT ttle FROM albm WHERE col1 = 2016;",
                rows=[{"ttle": "Hardwired... to Self-Destruct"}],
                row_count=1,
                columns=["ttle"],
            ),
        )
    )
    pipeline.catalog.get = AsyncMock(return_value=album_schema)
    pipeline.close = AsyncMock()
    return pipeline


class TestCLIBasics:
    def test_cli_help(self, runner):
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("ask", "chat", "schema", "sanitize", "serve"):
            assert command in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestAskCommand:
    def test_ask_prints_answer_sql_and_rows(self, runner, cli_pipeline):
        with patch("data_agent.cli.start_pipeline", new_callable=AsyncMock, return_value=cli_pipeline):
            result = runner.invoke(cli, ["ask", "What album was released in 2016?"])

        assert result.exit_code == 0
        assert "came out in 2016" in result.output
        assert "SELECT ttle FROM albm WHERE col1 = 2016;" in result.output
        assert "Hardwired" in result.output
        cli_pipeline.run.assert_awaited_once_with("What album was released in 2016?", None)
        cli_pipeline.close.assert_awaited_once()

    def test_ask_hides_sql(self, runner, cli_pipeline):
        with patch("data_agent.cli.start_pipeline", new_callable=AsyncMock, return_value=cli_pipeline):
            result = runner.invoke(cli, ["ask", "Albums?", "--no-sql", "--conversation-id", "c1"])

        assert result.exit_code == 0
        assert "Generated SQL" not in result.output
        cli_pipeline.run.assert_awaited_once_with("Albums?", "c1")

    def test_ask_pipeline_error_exits_1(self, runner, cli_pipeline):
        cli_pipeline.run.side_effect = ExecutionError("42601", "syntax error")

        with patch("data_agent.cli.start_pipeline", new_callable=AsyncMock, return_value=cli_pipeline):
            result = runner.invoke(cli, ["ask", "Albums?"])

        assert result.exit_code == 1
        assert "syntax error" in result.output
        cli_pipeline.close.assert_awaited_once()

    def test_ask_startup_failure(self, runner):
        with patch(
            "data_agent.cli.start_pipeline",
            new_callable=AsyncMock,
            side_effect=OSError("Connection refused"),
        ):
            result = runner.invoke(cli, ["ask", "Albums?"])

        assert result.exit_code == 1
        assert "Connection refused" in result.output


class TestChatCommand:
    def test_chat_uses_one_conversation(self, runner, cli_pipeline):
        with patch("data_agent.cli.start_pipeline", new_callable=AsyncMock, return_value=cli_pipeline):
            result = runner.invoke(cli, ["chat"], input="Albums from 2016?\nAnd 2017?\nexit\n")

        assert result.exit_code == 0
        assert cli_pipeline.run.await_count == 2
        first_id = cli_pipeline.run.await_args_list[0].args[1]
        second_id = cli_pipeline.run.await_args_list[1].args[1]
        assert first_id == second_id
        assert first_id.startswith("cli_")


class TestSchemaCommand:
    def test_schema_lists_tables(self, runner, cli_pipeline):
        with patch("data_agent.cli.start_pipeline", new_callable=AsyncMock, return_value=cli_pipeline):
            result = runner.invoke(cli, ["schema"])

        assert result.exit_code == 0
        assert "albm" in result.output
        assert "ttle" in result.output
        cli_pipeline.close.assert_awaited_once()


class TestSanitizeCommand:
    def test_sanitize_with_default_aliases(self, runner):
        result = runner.invoke(cli, ["sanitize", "SELECT title FROM album WHERE year = '2016'"])

        assert result.exit_code == 0
        assert result.output.strip() == "SELECT ttle FROM albm WHERE col1 = 2016"

    def test_sanitize_with_alias_file(self, runner, tmp_path):
        aliases = tmp_path / "aliases.yaml"
        aliases.write_text("album: record_tbl\n")

        result = runner.invoke(cli, ["sanitize", "SELECT * FROM album", "--aliases", str(aliases)])

        assert result.exit_code == 0
        assert result.output.strip() == "SELECT * FROM record_tbl"

    def test_sanitize_blank(self, runner):
        result = runner.invoke(cli, ["sanitize", "   "])

        assert result.exit_code == 1
        assert "Empty SQL" in result.output


class TestExplainCommand:
    def test_explain_prints_explanation(self, runner, cli_pipeline):
        cli_pipeline.explain = AsyncMock(return_value="Lists album titles released in 2016.")

        with patch("data_agent.cli.start_pipeline", new_callable=AsyncMock, return_value=cli_pipeline):
            result = runner.invoke(cli, ["explain", "SELECT ttle FROM albm WHERE col1 = 2016"])

        assert result.exit_code == 0
        assert "Lists album titles released in 2016." in result.output
        cli_pipeline.explain.assert_awaited_once_with("SELECT ttle FROM albm WHERE col1 = 2016")
        cli_pipeline.run.assert_not_awaited()
        cli_pipeline.close.assert_awaited_once()

    def test_explain_completion_error_exits_1(self, runner, cli_pipeline):
        cli_pipeline.explain = AsyncMock(side_effect=CompletionError("rate limit exceeded", rate_limited=True))

        with patch("data_agent.cli.start_pipeline", new_callable=AsyncMock, return_value=cli_pipeline):
            result = runner.invoke(cli, ["explain", "SELECT 1"])

        assert result.exit_code == 1
        assert "rate limit exceeded" in result.output


class TestServeCommand:
    def test_serve_runs_uvicorn(self, runner):
        with patch("uvicorn.run") as mock_run:
            result = runner.invoke(cli, ["serve", "--port", "9000"])

        assert result.exit_code == 0
        mock_run.assert_called_once_with(
            "data_agent.api.main:app",
            host="0.0.0.0",
            port=9000,
            reload=False,
        )
