"""Tests for the helpers shared by the commands."""

import io

import pytest
import typer

from ferrite.cli.options import collect_prompt, error_boundary, resolve_model
from ferrite.config.settings import FerriteSettings
from ferrite.core.client import ConfigurationError, InvalidRequestError, ServerError
from ferrite.core.models import ChatModel


class PipedInput(io.StringIO):
    def isatty(self) -> bool:
        return False


class TerminalInput(io.StringIO):
    def isatty(self) -> bool:
        return True


class TestCollectPrompt:
    def test_argument_only(self) -> None:
        assert collect_prompt("question", combine=True, stream=TerminalInput()) == "question"

    def test_stdin_only(self) -> None:
        assert collect_prompt(None, stream=PipedInput("from pipe\n")) == "from pipe"

    def test_argument_and_stdin_are_combined(self) -> None:
        prompt = collect_prompt("explain", combine=True, stream=PipedInput("def f(): pass\n"))
        assert prompt == "explain\n\ndef f(): pass"

    def test_argument_wins_without_combine(self) -> None:
        assert collect_prompt("translate me", stream=PipedInput("ignored")) == "translate me"

    def test_empty_pipe_falls_back_to_argument(self) -> None:
        assert collect_prompt("question", combine=True, stream=PipedInput("")) == "question"

    def test_missing_prompt(self) -> None:
        with pytest.raises(InvalidRequestError, match="Prompt must be provided"):
            collect_prompt(None, stream=TerminalInput())
        with pytest.raises(InvalidRequestError):
            collect_prompt(None, stream=PipedInput("  \n"))


class TestResolveModel:
    def test_flag_beats_default_model(self) -> None:
        settings = FerriteSettings(default_model="gpt-4.1")
        assert resolve_model("o3", settings) == ChatModel.O3
        assert resolve_model(None, settings) == ChatModel.GPT_4_1

    def test_unknown_flag(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown Model"):
            resolve_model("gpt-0", FerriteSettings())


class TestErrorBoundary:
    def test_ferrite_error_exits_with_status_1(self, capsys: pytest.CaptureFixture) -> None:
        with pytest.raises(typer.Exit) as exc_info:
            with error_boundary():
                raise ServerError("OpenAI API error (503)")

        assert exc_info.value.exit_code == 1
        assert "Error: OpenAI API error (503)" in capsys.readouterr().err

    def test_other_exceptions_propagate(self) -> None:
        with pytest.raises(RuntimeError):
            with error_boundary():
                raise RuntimeError("bug")
