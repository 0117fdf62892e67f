"""
Unit tests for the agent-media command line.

Tests:
- Argument parsing per group/command
- JSON envelope on stdout and exit codes
- Provider listing
"""

import json
from unittest.mock import AsyncMock, patch

import pytest

from agent_media import cli
from agent_media.core.result import ErrorCode, create_error, create_success


@pytest.fixture(autouse=True)
def isolated_cli():
    """Keep .env files and global logging setup out of CLI runs."""
    with patch("agent_media.cli.load_dotenv"), patch("agent_media.cli.setup_logging"):
        yield


class TestParser:
    """Test argparse configuration."""

    def test_resize_arguments(self):
        args = cli.build_parser().parse_args(
            ["image", "resize", "--in", "a.png", "--width", "100", "--no-aspect", "--out", "o"]
        )

        assert (args.group, args.command) == ("image", "resize")
        assert args.input == "a.png"
        assert args.width == 100
        assert args.maintain_aspect_ratio is False
        assert args.out == "o"

    def test_crop_focus_flags(self):
        args = cli.build_parser().parse_args(
            ["image", "crop", "--in", "a.png", "--width", "10", "--height", "10", "--focus-x", "20"]
        )

        assert args.focus_x == 20.0
        assert args.focus_y is None

    def test_video_generate_optional_input(self):
        args = cli.build_parser().parse_args(["video", "generate", "--prompt", "waves", "--audio"])

        assert args.input is None
        assert args.generate_audio is True

    def test_input_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["image", "resize", "--width", "10"])

    def test_invalid_format_choice(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["image", "convert", "--in", "a.png", "--format", "bmp"])

    def test_every_command_maps_to_an_action(self):
        parser = cli.build_parser()
        group_actions = parser._subparsers._group_actions[0].choices
        for group in ("image", "audio", "video"):
            commands = group_actions[group]._subparsers._group_actions[0].choices
            for command in commands:
                assert (group, command) in cli.COMMANDS

    def test_parsed_options_match_action_signature(self):
        args = cli.build_parser().parse_args(["audio", "transcribe", "--in", "a.mp3", "--num-speakers", "2"])

        assert cli._action_kwargs(args) == {
            "input": "a.mp3",
            "diarize": False,
            "language": None,
            "num_speakers": 2,
            "model": None,
            "out": None,
            "name": None,
            "provider": None,
        }


class TestMain:
    """Test end-to-end CLI runs."""

    def test_resize_success(self, png_file, tmp_path, capsys):
        out_dir = tmp_path / "cli-out"
        code = cli.main(["image", "resize", "--in", str(png_file), "--width", "100", "--out", str(out_dir)])

        result = json.loads(capsys.readouterr().out)
        assert code == 0
        assert result["ok"] is True
        assert result["provider"] == "local"
        assert result["mime"] == "image/png"
        assert result["output_path"].startswith(str(out_dir.resolve()))

    def test_crop_failure_exit_code(self, png_file, tmp_path, capsys):
        code = cli.main(
            ["image", "crop", "--in", str(png_file), "--width", "999", "--height", "10", "--out", str(tmp_path)]
        )

        result = json.loads(capsys.readouterr().out)
        assert code == 1
        assert result == {
            "ok": False,
            "error": {
                "code": "INVALID_INPUT",
                "message": "Crop dimensions (999x10) exceed image dimensions (400x300)",
            },
        }

    def test_explicit_provider_without_key(self, tmp_path, capsys):
        code = cli.main(["image", "generate", "--prompt", "x", "--provider", "fal", "--out", str(tmp_path)])

        result = json.loads(capsys.readouterr().out)
        assert code == 1
        assert result["error"] == {"code": "API_ERROR", "message": "FAL_API_KEY environment variable is not set"}

    def test_dispatches_to_action_function(self, capsys):
        fake = AsyncMock(return_value=create_success("video", "video-generate", "fal", "/tmp/v.mp4", "video/mp4", 5))
        with patch.dict(cli.COMMANDS, {("video", "generate"): fake}):
            code = cli.main(["video", "generate", "--prompt", "storm", "--resolution", "1080p", "--provider", "fal"])

        assert code == 0
        kwargs = fake.await_args.kwargs
        assert kwargs["prompt"] == "storm"
        assert kwargs["resolution"] == "1080p"
        assert kwargs["provider"] == "fal"
        assert json.loads(capsys.readouterr().out)["output_path"] == "/tmp/v.mp4"

    def test_error_envelope_exit_code(self, capsys):
        fake = AsyncMock(return_value=create_error(ErrorCode.NETWORK_ERROR, "Failed to fetch URL: 404 Not Found"))
        with patch.dict(cli.COMMANDS, {("audio", "extract"): fake}):
            code = cli.main(["audio", "extract", "--in", "https://example.com/v.mp4"])

        assert code == 1
        assert json.loads(capsys.readouterr().out)["error"]["code"] == "NETWORK_ERROR"

    def test_unusual_environment_variables(self, monkeypatch, capsys):
        monkeypatch.setenv("ENVIRONMENT", "staging")
        monkeypatch.setenv("LOG_LEVEL", "loud")

        code = cli.main(["providers"])

        assert code == 0
        assert json.loads(capsys.readouterr().out)["providers"]

    def test_providers_listing(self, capsys):
        code = cli.main(["providers"])

        listing = json.loads(capsys.readouterr().out)["providers"]
        assert code == 0
        assert [p["name"] for p in listing] == ["local", "transformers", "fal", "replicate", "runpod", "ai-gateway"]
        assert "extract" in listing[0]["actions"]
        assert listing[-1]["actions"] == ["generate", "edit"]
