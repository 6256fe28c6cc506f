#!/usr/bin/env python3
"""
Find the games played in an EVA match recording.

The video is scanned backward from its last frame: a game's score screen is
unambiguous, so each game is opened at its end, enriched with map and team
names while gameplay frames go by, and closed when its loading or intro
screen shows up.
"""

import os
import sys

import cv2

from analyze_frame import (
    ALPHANUMERIC_WHITELIST,
    BLUE_NAME_RECT,
    BLUE_SCORE_RECT,
    CLOCK_RECT,
    ELAPSED_RECT,
    MAP_NAME_RECT,
    NUMERIC_WHITELIST,
    ORANGE_NAME_RECT,
    ORANGE_SCORE_RECT,
    PSM_SINGLE_LINE,
    PSM_SPARSE_BLOCK,
    InvalidRegionError,
    TesseractRecognizer,
    extract_text,
    most_frequent,
    parse_clock,
    parse_elapsed,
    parse_int,
    resolve_map,
)
from game import Game, print_game_result
from screens import classify_frame


SAMPLE_INTERVAL_SECONDS = 2
END_SCREEN_SKIP_SECONDS = 30  # Tail of a game before its score screen
START_OFFSET_SECONDS = 2  # Loader animation still running when detected
TEAM_NAME_SAMPLES = 10
MIN_TEAM_NAME_LENGTH = 2
MAX_GAME_MINUTES = 10


class VideoFrameSource:
    """Seekable access to the frames of a video file through OpenCV."""

    def __init__(self, video_path: str):
        self.cap = cv2.VideoCapture(video_path)
        if not self.cap.isOpened():
            raise FileNotFoundError(f"Could not open video: {video_path}")

    def frame_count(self):
        return int(self.cap.get(cv2.CAP_PROP_FRAME_COUNT))

    def seek(self, frame_num: int):
        self.cap.set(cv2.CAP_PROP_POS_FRAMES, frame_num)

    def read(self):
        ret, frame = self.cap.read()
        if not ret or frame is None or frame.size == 0:
            return None
        return frame

    def timestamp(self):
        """Position in seconds of the frame last read."""
        return self.cap.get(cv2.CAP_PROP_POS_MSEC) / 1000.0

    def close(self):
        self.cap.release()


class GameScanner:
    """
    State machine over frames visited from the end of the video backward.

    Owns the list of games in video order (earliest first). Games are added
    at the front as the scan moves backward, so only the front game can be open,
    and a new game is only created once the front game is closed.
    """

    def __init__(self, text_recognizer, number_recognizer,
                 max_game_minutes=MAX_GAME_MINUTES, debug=False,
                 on_fast_forward=None, save_frames_dir=None, fps=None):
        """
        Initialize the scanner.

        Args:
            text_recognizer: Recognizer for map and team names and the clock
            number_recognizer: Recognizer restricted to digits, for scores
            max_game_minutes: Longest possible game, used to jump to its start
            debug: If True, print detections and OCR readings to stderr
            on_fast_forward: Callback(nb_games) when the scan jumps to a game's start
            save_frames_dir: If set, save every frame that triggered a detection
            fps: Frame rate used to name saved frames
        """
        self.text_recognizer = text_recognizer
        self.number_recognizer = number_recognizer
        self.max_game_minutes = max_game_minutes
        self.debug = debug
        self.on_fast_forward = on_fast_forward
        self.save_frames_dir = save_frames_dir
        self.fps = fps
        self.games = []

    def _log(self, message):
        if self.debug:
            print(message, file=sys.stderr)

    def _read(self, frame, rect, recognizer, psm):
        try:
            return extract_text(frame, rect, recognizer, psm)
        except InvalidRegionError as e:
            self._log(f"  Skipping field: {e}")
            return ""

    def _save_frame(self, frame, name, frame_num):
        if not self.save_frames_dir or not self.fps:
            return
        timestamp = frame_num / self.fps
        minutes = int(timestamp // 60)
        seconds = int(timestamp % 60)
        os.makedirs(self.save_frames_dir, exist_ok=True)
        filename = f"{name}_{frame_num:06d}_{minutes}m{seconds:02d}s.png"
        cv2.imwrite(os.path.join(self.save_frames_dir, filename), frame)

    def process_frame(self, frame, timestamp, frame_num=0):
        """
        Run the detectors on one frame and update the games.

        Args:
            frame: BGR frame
            timestamp: Position of the frame in seconds
            frame_num: Index of the frame in the video

        Returns:
            dict: 'event' (detector that fired or None) and 'skip_seconds',
                  extra video time the scan can jump over backward
        """
        event = classify_frame(frame, self.games)
        skip_seconds = 0

        if event == 'end':
            self._open_game(frame, timestamp, frame_num)
            skip_seconds = END_SCREEN_SKIP_SECONDS
        elif event in ('loading', 'intro'):
            game = self.games[0]
            game.close(round(timestamp) + START_OFFSET_SECONDS)
            self._log(f"Game start found ({event})! Frame {frame_num}, start={game.readable_start}")
        elif event == 'in_match':
            skip_seconds = self._gather(frame, self.games[0])

        if event is not None and event != 'in_match':
            self._save_frame(frame, event, frame_num)

        return {'event': event, 'skip_seconds': skip_seconds}

    def _open_game(self, frame, timestamp, frame_num):
        orange_score = parse_int(self._read(frame, ORANGE_SCORE_RECT, self.number_recognizer, PSM_SINGLE_LINE))
        blue_score = parse_int(self._read(frame, BLUE_SCORE_RECT, self.number_recognizer, PSM_SINGLE_LINE))
        elapsed = parse_elapsed(self._read(frame, ELAPSED_RECT, self.number_recognizer, PSM_SINGLE_LINE))

        game = Game(end_time=round(timestamp), end_elapsed=elapsed)
        game.orange_team.score = orange_score
        game.blue_team.score = blue_score
        self.games.insert(0, game)

        self._log(f"\n--- Game end found! Frame {frame_num}, end={game.readable_end}, "
                  f"score {orange_score}-{blue_score}, elapsed={elapsed}")

    def _gather_team_name(self, frame, team, rect):
        if len(team.names) < TEAM_NAME_SAMPLES:
            text = self._read(frame, rect, self.text_recognizer, PSM_SPARSE_BLOCK)
            if len(text) >= MIN_TEAM_NAME_LENGTH:
                team.names.append(text)
        if len(team.names) >= TEAM_NAME_SAMPLES and not team.name:
            team.name = most_frequent(team.names)
            self._log(f"  Team name resolved: '{team.name}' from {team.names}")

    def _gather(self, frame, game):
        """Collect map and team names from a gameplay frame. Returns seconds to skip."""
        game.start_gathering()

        if not game.map:
            game.map = resolve_map(self._read(frame, MAP_NAME_RECT, self.text_recognizer, PSM_SINGLE_LINE))
            if game.map:
                self._log(f"  Map found: {game.map}")

        self._gather_team_name(frame, game.orange_team, ORANGE_NAME_RECT)
        self._gather_team_name(frame, game.blue_team, BLUE_NAME_RECT)

        if game.fast_forwarded or not (game.map and game.orange_team.name and game.blue_team.name):
            return 0

        # Everything is known: jump close to the game's start using the clock
        clock = parse_clock(self._read(frame, CLOCK_RECT, self.text_recognizer, PSM_SINGLE_LINE))
        if clock is None:
            return 0
        minutes, seconds = clock
        if minutes > self.max_game_minutes - 1:
            return 0

        game.fast_forwarded = True
        remaining = (self.max_game_minutes - minutes) * 60 - seconds
        self._log(f"  Clock {minutes}:{seconds:02d}, jumping back {remaining}s")
        if self.on_fast_forward:
            self.on_fast_forward(len(self.games))
        return max(0, remaining)


def find_games(video_path: str, duration: float, debug: bool = False,
               on_progress: callable = None, on_fast_forward: callable = None,
               max_game_minutes: int = MAX_GAME_MINUTES, tesseract_cmd: str = None,
               save_frames_dir: str = None, frame_source=None, recognizers=None):
    """
    Scan a video backward and return the games found in it.
    Games are prepended as they are found, so the list is in video order
    (earliest first).

    Args:
        video_path: Path to the input video file
        duration: Length of the video in seconds
        debug: If True, print detections to stderr
        on_progress: Callback(percent) each time the integer progress increases
        on_fast_forward: Callback(nb_games) each time the scan jumps to a game's start
        max_game_minutes: Longest possible game in minutes
        tesseract_cmd: Path to the tesseract executable (optional)
        save_frames_dir: Directory to save frames that triggered a detection
        frame_source: Already opened frame source, instead of opening video_path
        recognizers: (text_recognizer, number_recognizer) instead of Tesseract

    Returns:
        list: Game objects, in video order (earliest first)
    """
    if duration is None or duration <= 0:
        raise ValueError(f"Video duration must be positive, got {duration}")

    if frame_source is None:
        try:
            frame_source = VideoFrameSource(video_path)
        except FileNotFoundError as e:
            if debug:
                print(f"Error: {e}", file=sys.stderr)
            return []

    try:
        if recognizers is None:
            recognizers = (
                TesseractRecognizer(ALPHANUMERIC_WHITELIST, tesseract_cmd=tesseract_cmd),
                TesseractRecognizer(NUMERIC_WHITELIST, tesseract_cmd=tesseract_cmd),
            )
        text_recognizer, number_recognizer = recognizers

        total_frames = frame_source.frame_count()
        fps = max(1, int(total_frames / duration))
        step = fps * SAMPLE_INTERVAL_SECONDS

        if debug:
            print(f"Video: {total_frames} frames, {duration}s, ~{fps} fps, "
                  f"sampling every {step} frames", file=sys.stderr)

        scanner = GameScanner(
            text_recognizer,
            number_recognizer,
            max_game_minutes=max_game_minutes,
            debug=debug,
            on_fast_forward=on_fast_forward,
            save_frames_dir=save_frames_dir,
            fps=fps,
        )

        last_percent = 0
        frame_num = total_frames - 1
        while frame_num >= 0:
            percent = 100 - (frame_num * 100 // total_frames)
            if percent > last_percent:
                last_percent = percent
                if on_progress:
                    on_progress(percent)

            frame_source.seek(frame_num)
            frame = frame_source.read()
            if frame is not None:
                result = scanner.process_frame(frame, frame_source.timestamp(), frame_num)
                frame_num -= result['skip_seconds'] * fps

            frame_num -= step
    finally:
        frame_source.close()

    if debug:
        print(f"\nGames found: {len(scanner.games)}", file=sys.stderr)
        for i, game in enumerate(scanner.games, start=1):
            print_game_result(game, game_num=i, file=sys.stderr)

    return scanner.games
