#!/usr/bin/env python3
"""
EvaStats - Cut an EVA match recording into games.
Prints progress and the games found as JSON lines on stdout.
"""

import argparse
import json
import sys
from pathlib import Path

from find_games import MAX_GAME_MINUTES, find_games
from game import games_to_json


WINDOWS_NAMES = ('win32', 'windows', 'win')


class _ArgumentParser(argparse.ArgumentParser):
    """Argument errors exit with status 1."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser():
    parser = _ArgumentParser(
        description="Find the games played in an EVA match recording"
    )
    parser.add_argument("video", help="Path to the input .mp4 video")
    parser.add_argument("os", help="Operating system name, e.g. win32, linux, darwin")
    parser.add_argument("debug", help="'true' to print diagnostics to stderr")
    parser.add_argument("tool_path", help="Path to the tesseract executable ('' for default)")
    parser.add_argument("duration", help="Duration of the video in seconds")
    parser.add_argument(
        "--max-game-minutes",
        type=int,
        default=MAX_GAME_MINUTES,
        help=f"Longest possible game in minutes (default: {MAX_GAME_MINUTES})"
    )
    parser.add_argument(
        "--save-frames",
        default=None,
        help="Debug: directory where frames that triggered a detection are saved"
    )
    return parser


def normalize_video_path(video_path: str, os_name: str):
    if os_name.lower() in WINDOWS_NAMES:
        return video_path.replace('\\', '/')
    return video_path


def emit(payload):
    print(json.dumps(payload, separators=(',', ':')), flush=True)


def main(argv=None):
    args = build_parser().parse_args(argv)
    debug = args.debug == "true"

    if Path(args.video).suffix.lower() != ".mp4":
        if debug:
            print("Error: the file is not an MP4.", file=sys.stderr)
        return 1

    try:
        duration = float(args.duration)
        if duration <= 0:
            raise ValueError(duration)
    except ValueError:
        if debug:
            print(f"Error: invalid video duration '{args.duration}'.", file=sys.stderr)
        return 1

    games = find_games(
        video_path=normalize_video_path(args.video, args.os),
        duration=duration,
        debug=debug,
        on_progress=lambda percent: emit({"percent": percent}),
        on_fast_forward=lambda nb_games: emit({"nbGames": nb_games}),
        max_game_minutes=args.max_game_minutes,
        tesseract_cmd=args.tool_path or None,
        save_frames_dir=args.save_frames,
    )

    print(games_to_json(games), flush=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
