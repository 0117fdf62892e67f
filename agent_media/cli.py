"""
Command line interface for agent-media.

    agent-media image resize --in photo.jpg --width 800
    agent-media audio transcribe --in talk.mp3 --diarize
    agent-media video generate --prompt "a fox in the snow"
    agent-media providers

Every command prints a JSON result envelope on stdout and exits 0 when
the action succeeded, 1 otherwise. Logs go to stderr.
"""

import argparse
import asyncio
import json
import sys

from dotenv import load_dotenv

from . import __version__
from .actions import audio, image, video
from .core.config import settings
from .core.logging import get_logger, setup_logging, with_logging_context
from .core.result import MediaResult, print_result
from .core.types import AUDIO_FORMATS, IMAGE_FORMATS, VIDEO_FPS, VIDEO_RESOLUTIONS
from .providers import global_registry, register_all_providers

logger = get_logger("cli")


def _add_common(parser: argparse.ArgumentParser, model: bool = False) -> None:
    parser.add_argument("--out", help="Output directory (default: $AGENT_MEDIA_DIR or ./.agent-media)")
    parser.add_argument("--name", help="Output filename; extension is added when missing")
    parser.add_argument("--provider", help="Provider to use instead of auto-detection")
    if model:
        parser.add_argument("--model", help="Model identifier or alias")


def _add_input(parser: argparse.ArgumentParser, required: bool = True) -> None:
    parser.add_argument("--in", dest="input", required=required, help="Input file path or URL")


def _build_image_parser(subparsers) -> None:
    group = subparsers.add_parser("image", help="Image actions")
    commands = group.add_subparsers(dest="command", required=True)

    p = commands.add_parser("resize", help="Resize an image")
    _add_input(p)
    p.add_argument("--width", type=int)
    p.add_argument("--height", type=int)
    p.add_argument("--no-aspect", dest="maintain_aspect_ratio", action="store_false",
                   help="Stretch to the exact width and height")
    _add_common(p)

    p = commands.add_parser("convert", help="Convert an image format")
    _add_input(p)
    p.add_argument("--format", required=True, choices=IMAGE_FORMATS)
    p.add_argument("--quality", type=int, help="Quality for lossy formats (1-100)")
    p.add_argument("--dpi", type=int)
    p.add_argument("--width", type=int)
    p.add_argument("--height", type=int)
    _add_common(p)

    p = commands.add_parser("remove-background", help="Remove the background of an image")
    _add_input(p)
    _add_common(p, model=True)

    p = commands.add_parser("generate", help="Generate an image from a prompt")
    p.add_argument("--prompt", required=True)
    p.add_argument("--width", type=int)
    p.add_argument("--height", type=int)
    p.add_argument("--count", type=int, default=1)
    p.add_argument("--seed", type=int)
    _add_common(p, model=True)

    p = commands.add_parser("extend", help="Pad an image with a solid color")
    _add_input(p)
    p.add_argument("--padding", type=int, required=True)
    p.add_argument("--color", required=True, help="Hex color, e.g. #ffffff")
    p.add_argument("--dpi", type=int)
    _add_common(p)

    p = commands.add_parser("edit", help="Edit an image from a prompt")
    _add_input(p)
    p.add_argument("--prompt", required=True)
    _add_common(p, model=True)

    p = commands.add_parser("crop", help="Crop an image around a focal point")
    _add_input(p)
    p.add_argument("--width", type=int, required=True)
    p.add_argument("--height", type=int, required=True)
    p.add_argument("--focus-x", type=float, help="Focal point X in percent (default 50)")
    p.add_argument("--focus-y", type=float, help="Focal point Y in percent (default 50)")
    p.add_argument("--dpi", type=int)
    _add_common(p)

    p = commands.add_parser("upscale", help="Upscale an image")
    _add_input(p)
    p.add_argument("--scale", type=int, choices=(2, 4))
    _add_common(p, model=True)


def _build_audio_parser(subparsers) -> None:
    group = subparsers.add_parser("audio", help="Audio actions")
    commands = group.add_subparsers(dest="command", required=True)

    p = commands.add_parser("extract", help="Extract the audio track of a video")
    _add_input(p)
    p.add_argument("--format", default="mp3", choices=AUDIO_FORMATS)
    _add_common(p)

    p = commands.add_parser("transcribe", help="Transcribe speech to text")
    _add_input(p)
    p.add_argument("--diarize", action="store_true", help="Identify speakers")
    p.add_argument("--language", help="Language code, detected when omitted")
    p.add_argument("--num-speakers", type=int)
    _add_common(p, model=True)


def _build_video_parser(subparsers) -> None:
    group = subparsers.add_parser("video", help="Video actions")
    commands = group.add_subparsers(dest="command", required=True)

    p = commands.add_parser("generate", help="Generate a video from a prompt")
    p.add_argument("--prompt", required=True)
    _add_input(p, required=False)
    p.add_argument("--duration", type=int)
    p.add_argument("--resolution", choices=VIDEO_RESOLUTIONS)
    p.add_argument("--fps", type=int, choices=VIDEO_FPS)
    p.add_argument("--audio", dest="generate_audio", action="store_true", help="Generate an audio track")
    _add_common(p, model=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="agent-media", description="Media actions for agents")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="group", required=True)
    _build_image_parser(subparsers)
    _build_audio_parser(subparsers)
    _build_video_parser(subparsers)
    subparsers.add_parser("providers", help="List registered providers and their actions")

    return parser


# (group, command) -> action function
COMMANDS = {
    ("image", "resize"): image.resize,
    ("image", "convert"): image.convert,
    ("image", "remove-background"): image.remove_background,
    ("image", "generate"): image.generate,
    ("image", "extend"): image.extend,
    ("image", "edit"): image.edit,
    ("image", "crop"): image.crop,
    ("image", "upscale"): image.upscale,
    ("audio", "extract"): audio.extract,
    ("audio", "transcribe"): audio.transcribe,
    ("video", "generate"): video.generate,
}


def _action_kwargs(args: argparse.Namespace) -> dict:
    """Parsed options as keyword arguments for the action function."""
    kwargs = vars(args).copy()
    kwargs.pop("group", None)
    kwargs.pop("command", None)
    return kwargs


def list_providers() -> list[dict]:
    return [
        {
            "name": name,
            "actions": list(getattr(global_registry.get(name), "supported_actions", ())),
        }
        for name in global_registry.get_provider_names()
    ]


async def run_command(args: argparse.Namespace) -> MediaResult:
    action_fn = COMMANDS[(args.group, args.command)]
    with with_logging_context(action=f"{args.group} {args.command}"):
        return await action_fn(**_action_kwargs(args))


def main(argv: list[str] | None = None) -> int:
    """CLI entry point; returns the process exit code."""
    load_dotenv()
    settings.reload()
    setup_logging()

    args = build_parser().parse_args(argv)
    register_all_providers()
    logger.debug("Providers registered", providers=global_registry.get_provider_names())

    if args.group == "providers":
        print(json.dumps({"providers": list_providers()}, indent=2))
        return 0

    result = asyncio.run(run_command(args))
    print_result(result)
    return 0 if result.ok else 1


if __name__ == "__main__":
    sys.exit(main())
