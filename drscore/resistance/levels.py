"""
Resistance levels, and the score ranges that map total scores to them.

Score ranges use the ASI notation, for example::

    (-INF TO 9 => 1, 10 TO 14 => 2, 15 TO 29 => 3, 30 TO 59 => 4, 60 TO INF => 5)
"""
import math
import re
from bisect import bisect_right
from collections import namedtuple
from dataclasses import dataclass
from enum import Enum
from operator import attrgetter
from typing import Iterable, Union

ResistanceLevel = namedtuple('ResistanceLevel', 'level text sir')
RANGE_PATTERN = re.compile(r'\s*(\S+)\s*TO\s*(\S+)\s*=>\s*(\S+)\s*')
HIVDB_RANGES = '(-INF TO 9 => 1, 10 TO 14 => 2, 15 TO 29 => 3, 30 TO 59 => 4, 60 TO INF => 5)'


class ResistanceLevels(ResistanceLevel, Enum):
    NA = ResistanceLevel(-1, 'Resistance Interpretation Not Available', '')
    SUSCEPTIBLE = ResistanceLevel(1, 'Susceptible', 'S')
    POTENTIAL = ResistanceLevel(2, 'Potential Low-Level Resistance', 'S')
    LOW = ResistanceLevel(3, 'Low-Level Resistance', 'I')
    INTERMEDIATE = ResistanceLevel(4, 'Intermediate Resistance', 'I')
    HIGH = ResistanceLevel(5, 'High-Level Resistance', 'R')

    @classmethod
    def from_level(cls, level: int) -> 'ResistanceLevels':
        for resistance_level in cls:
            if resistance_level.level == level:
                return resistance_level
        raise ValueError(f'Unknown resistance level: {level}.')


@dataclass(frozen=True)
class ScoreRange:
    low: float
    high: float
    level: int


def parse_bound(text: str) -> float:
    if text == '-INF':
        return -math.inf
    if text == 'INF':
        return math.inf
    return float(text)


class LevelThresholds:
    """ Step function from a total score to a resistance level.

    A score gets the level of the last range that starts at or below it, so
    scores that fall between two ranges, like 9.5 in the HIVDB ranges, get the
    lower level.
    """
    def __init__(self, ranges: Iterable[ScoreRange]):
        self.ranges = tuple(sorted(ranges, key=attrgetter('low')))
        if not self.ranges:
            raise ValueError('No score ranges given.')
        for score_range in self.ranges:
            ResistanceLevels.from_level(score_range.level)
        for previous, current in zip(self.ranges, self.ranges[1:]):
            if current.low <= previous.high:
                raise ValueError(
                    f'Score range starting at {current.low} overlaps the one '
                    f'ending at {previous.high}.')
            if current.level < previous.level:
                raise ValueError(
                    f'Level {current.level} for scores from {current.low} is '
                    f'lower than level {previous.level} below it.')
        self._lows = [score_range.low for score_range in self.ranges]

    @classmethod
    def parse(cls, ranges: Union[str, Iterable[str]]) -> 'LevelThresholds':
        """ Parse score ranges from ASI text, or a list of ASI range items. """
        if isinstance(ranges, str):
            ranges = ranges.strip(')( \n').split(',')
        score_ranges = []
        for item in ranges:
            match = RANGE_PATTERN.fullmatch(item.strip('\n \t'))
            if match is None:
                raise ValueError(f'Invalid score range: {item!r}.')
            low, high, level = match.groups()
            score_ranges.append(ScoreRange(parse_bound(low),
                                           parse_bound(high),
                                           int(level)))
        return cls(score_ranges)

    @classmethod
    def hivdb(cls) -> 'LevelThresholds':
        return cls.parse(HIVDB_RANGES)

    def level_for(self, score: float) -> int:
        index = bisect_right(self._lows, score) - 1
        return self.ranges[max(index, 0)].level

    def resistance_level(self, score: float) -> ResistanceLevels:
        return ResistanceLevels.from_level(self.level_for(score))

    def __repr__(self):
        return 'LevelThresholds({})'.format(', '.join(
            f'{score_range.low:g} TO {score_range.high:g} => {score_range.level}'
            for score_range in self.ranges))
