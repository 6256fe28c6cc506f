#!/usr/bin/env python3
"""
Game records reconstructed from a match video.
A Game is built backward: its end is known first, then it gathers map and
team names while its start is still unknown, then it is closed.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel


# Value written on the wire for fields that were never resolved
UNSET = -1


class GameState(Enum):
    AWAITING_GATHER = 1
    GATHERING = 2
    CLOSED = 3


class Team:
    """One side of a match: resolved name, score and raw OCR name samples."""

    def __init__(self):
        self.name = ""
        self.score = None
        self.names = []
        self.players = []


class Game:
    """
    One match session found in the video.

    Times are seconds into the video. `end_time` and `end_elapsed` are set at
    creation, `start` when the game is closed.
    """

    def __init__(self, end_time: float, end_elapsed: Optional[int] = None):
        self.state = GameState.AWAITING_GATHER
        self.start = None
        self.end_time = end_time
        self.end_elapsed = end_elapsed
        self.map = ""
        self.orange_team = Team()
        self.blue_team = Team()
        self.fast_forwarded = False

    @property
    def is_open(self):
        return self.state != GameState.CLOSED

    def start_gathering(self):
        if self.state == GameState.AWAITING_GATHER:
            self.state = GameState.GATHERING

    def close(self, start: float):
        """Assign the start time. A game can only be closed once."""
        if self.state == GameState.CLOSED:
            raise RuntimeError(f"Game ending at {self.end_time}s is already closed")
        self.start = start
        self.state = GameState.CLOSED

    @property
    def duration(self):
        if self.start is None or self.end_time is None:
            return 0
        return self.end_time - self.start

    @property
    def readable_start(self):
        return "" if self.start is None else format_time(self.start)

    @property
    def readable_end(self):
        return "" if self.end_time is None else format_time(self.end_time)

    @property
    def readable_duration(self):
        return format_time(self.duration) if self.duration > 0 else "0"


def format_time(seconds):
    """Format seconds as MM:SS, or H:MM:SS past the hour."""
    minutes, secs = divmod(int(round(seconds)), 60)
    hours, minutes = divmod(minutes, 60)
    prefix = f"{hours}:" if hours else ""
    return f"{prefix}{minutes:02d}:{secs:02d}"


class TeamOut(BaseModel):
    name: str = ""
    score: int = UNSET


class EndOut(BaseModel):
    time: float = UNSET
    elapsed: int = UNSET


class GameOut(BaseModel):
    start: float = UNSET
    end: EndOut
    map: str = ""
    orangeTeam: TeamOut
    blueTeam: TeamOut

    @classmethod
    def from_game(cls, game: Game):
        def team_out(team):
            return TeamOut(name=team.name, score=_or_unset(team.score))

        return cls(
            start=_or_unset(game.start),
            end=EndOut(time=_or_unset(game.end_time), elapsed=_or_unset(game.end_elapsed)),
            map=game.map,
            orangeTeam=team_out(game.orange_team),
            blueTeam=team_out(game.blue_team),
        )


def _or_unset(value):
    return UNSET if value is None else value


def games_to_json(games: List[Game]):
    """Serialize games (video order, earliest first) to one JSON line."""
    return "[" + ",".join(GameOut.from_game(g).model_dump_json() for g in games) + "]"


def print_game_result(game: Game, game_num: int = None, file=None):
    """Print a human readable summary of one game."""
    header = f"Game {game_num}" if game_num else "Game"
    print(f"\n{header}: {game.map or '?'}", file=file)
    print(f"  Start: {game.readable_start or 'N/A'}  End: {game.readable_end or 'N/A'}"
          f"  Duration: {game.readable_duration}", file=file)

    def format_score(value):
        return "N/A" if value is None else value

    print(f"  Orange: {game.orange_team.name or '?'} - {format_score(game.orange_team.score)}", file=file)
    print(f"  Blue: {game.blue_team.name or '?'} - {format_score(game.blue_team.score)}", file=file)
