"""Win types, round tags and the round hierarchy.

A win event's ``win_type`` names the scoring milestone that produced it
(``q1``, ``score_change_reverse``...). For display each win is reduced to a
round tag; when one cell holds several round tags the highest ranked one is
its badge.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple


class WinType(str, Enum):
    Q1 = 'q1'
    HALFTIME = 'halftime'
    Q3 = 'q3'
    NORMAL = 'normal'
    Q1_REVERSE = 'q1_reverse'
    HALFTIME_REVERSE = 'halftime_reverse'
    Q3_REVERSE = 'q3_reverse'
    REVERSE = 'reverse'
    SCORE_CHANGE = 'score_change'
    SCORE_CHANGE_REVERSE = 'score_change_reverse'
    SCORE_CHANGE_FINAL = 'score_change_final'
    SCORE_CHANGE_FINAL_REVERSE = 'score_change_final_reverse'
    HYBRID_Q1 = 'hybrid_q1'
    HYBRID_HALFTIME = 'hybrid_halftime'
    HYBRID_Q3 = 'hybrid_q3'
    HYBRID_FINAL = 'hybrid_final'
    HYBRID_Q1_REVERSE = 'hybrid_q1_reverse'
    HYBRID_HALFTIME_REVERSE = 'hybrid_halftime_reverse'
    HYBRID_Q3_REVERSE = 'hybrid_q3_reverse'
    HYBRID_FINAL_REVERSE = 'hybrid_final_reverse'


class RoundTag(str, Enum):
    # Playoff rounds
    WILD_CARD = 'wild_card'
    DIVISIONAL = 'divisional'
    CONFERENCE = 'conference'
    SUPER_BOWL_HALFTIME = 'super_bowl_halftime'
    SUPER_BOWL = 'super_bowl'
    # March madness rounds
    MM_R64 = 'mm_r64'
    MM_R32 = 'mm_r32'
    MM_S16 = 'mm_s16'
    MM_E8 = 'mm_e8'
    MM_F4 = 'mm_f4'
    MM_FINAL = 'mm_final'
    # Single game
    SINGLE_GAME = 'single_game'
    # Score change mode
    SCORE_CHANGE_FORWARD = 'score_change_forward'
    SCORE_CHANGE_REVERSE = 'score_change_reverse'
    SCORE_CHANGE_BOTH = 'score_change_both'
    SCORE_CHANGE_FINAL = 'score_change_final'
    SCORE_CHANGE_FINAL_REVERSE = 'score_change_final_reverse'
    SCORE_CHANGE_FINAL_BOTH = 'score_change_final_both'


# Higher number = higher tier. Every RoundTag must appear here.
ROUND_HIERARCHY: Dict[RoundTag, int] = {
    RoundTag.WILD_CARD: 1,
    RoundTag.DIVISIONAL: 2,
    RoundTag.CONFERENCE: 3,
    RoundTag.SUPER_BOWL_HALFTIME: 4,
    RoundTag.SUPER_BOWL: 5,
    RoundTag.MM_R64: 1,
    RoundTag.MM_R32: 2,
    RoundTag.MM_S16: 3,
    RoundTag.MM_E8: 4,
    RoundTag.MM_F4: 5,
    RoundTag.MM_FINAL: 6,
    RoundTag.SINGLE_GAME: 1,
    RoundTag.SCORE_CHANGE_FORWARD: 1,
    RoundTag.SCORE_CHANGE_REVERSE: 1,
    RoundTag.SCORE_CHANGE_BOTH: 2,
    RoundTag.SCORE_CHANGE_FINAL: 3,
    RoundTag.SCORE_CHANGE_FINAL_REVERSE: 3,
    RoundTag.SCORE_CHANGE_FINAL_BOTH: 4,
}


@dataclass(frozen=True)
class Tier:
    """A round that can be won forward, reverse, or both."""
    forward: RoundTag
    reverse: RoundTag
    both: Optional[RoundTag] = None

    def tag_for(self, has_forward: bool, has_reverse: bool) -> RoundTag:
        if has_forward and has_reverse and self.both is not None:
            return self.both
        return self.forward if has_forward else self.reverse


SCORE_CHANGE_TIER = Tier(RoundTag.SCORE_CHANGE_FORWARD, RoundTag.SCORE_CHANGE_REVERSE, RoundTag.SCORE_CHANGE_BOTH)
SCORE_CHANGE_FINAL_TIER = Tier(
    RoundTag.SCORE_CHANGE_FINAL, RoundTag.SCORE_CHANGE_FINAL_REVERSE, RoundTag.SCORE_CHANGE_FINAL_BOTH
)

_QUARTER_BASES = {'q1', 'halftime', 'q3', 'normal', 'final'}


def reverse_win_type(win_type: str) -> str:
    if win_type == WinType.NORMAL.value:
        return WinType.REVERSE.value
    return f'{win_type}_reverse'


def split_win_type(win_type: str) -> Tuple[str, bool]:
    """Return (base win type, is_reverse)."""
    if win_type == WinType.REVERSE.value:
        return WinType.NORMAL.value, True
    if win_type.endswith('_reverse'):
        return win_type[:-len('_reverse')], True
    return win_type, False


def _game_round_tag(game_round: Optional[str]) -> RoundTag:
    # unknown or missing rounds count as a single game
    try:
        return RoundTag(game_round) if game_round else RoundTag.SINGLE_GAME
    except ValueError:
        return RoundTag.SINGLE_GAME


def classify_win(win_type: str, game_round: Optional[str] = None) -> Tuple[Tier, bool]:
    """Map a win type to the tier it counts toward and its direction."""
    base, is_reverse = split_win_type(win_type)
    if base.startswith('hybrid_'):
        base = base[len('hybrid_'):]
    if base == 'score_change':
        return SCORE_CHANGE_TIER, is_reverse
    if base == 'score_change_final':
        return SCORE_CHANGE_FINAL_TIER, is_reverse
    if base not in _QUARTER_BASES:
        raise KeyError(f'unknown win type {win_type!r}')
    tag = _game_round_tag(game_round)
    if tag == RoundTag.SUPER_BOWL and base == 'halftime':
        tag = RoundTag.SUPER_BOWL_HALFTIME
    return Tier(tag, tag), is_reverse


def rank_of(tag) -> int:
    try:
        return ROUND_HIERARCHY[RoundTag(tag)]
    except ValueError:
        return 0


@dataclass(frozen=True)
class RoundConfig:
    round_order: List[str]
    round_labels: Mapping[str, str]
    round_abbrevs: Mapping[str, str]
    round_hierarchy: Mapping[str, int] = field(default_factory=dict)


def get_round_config(event_type: str) -> RoundConfig:
    if event_type == 'march_madness':
        order = ['mm_r64', 'mm_r32', 'mm_s16', 'mm_e8', 'mm_f4', 'mm_final']
        return RoundConfig(
            round_order=order,
            round_labels={
                'mm_r64': 'Round of 64',
                'mm_r32': 'Round of 32',
                'mm_s16': 'Sweet 16',
                'mm_e8': 'Elite 8',
                'mm_f4': 'Final Four',
                'mm_final': 'Championship',
            },
            round_abbrevs={
                'mm_r64': 'R64',
                'mm_r32': 'R32',
                'mm_s16': 'S16',
                'mm_e8': 'E8',
                'mm_f4': 'F4',
                'mm_final': 'F',
            },
            round_hierarchy={r: ROUND_HIERARCHY[RoundTag(r)] for r in order},
        )
    if event_type == 'single_game':
        return RoundConfig(
            round_order=['single_game'],
            round_labels={'single_game': 'Game'},
            round_abbrevs={'single_game': 'G'},
            round_hierarchy={'single_game': 1},
        )
    # NFL playoffs
    return RoundConfig(
        round_order=['wild_card', 'divisional', 'conference', 'super_bowl_halftime', 'super_bowl'],
        round_labels={
            'wild_card': 'Wild Card',
            'divisional': 'Divisional',
            'conference': 'Conference',
            'super_bowl_halftime': 'Super Bowl Halftime',
            'super_bowl': 'Super Bowl',
        },
        round_abbrevs={
            'wild_card': 'WC',
            'divisional': 'D',
            'conference': 'C',
            'super_bowl_halftime': 'SBH',
            'super_bowl': 'SB',
        },
        round_hierarchy={
            r: ROUND_HIERARCHY[RoundTag(r)]
            for r in ('wild_card', 'divisional', 'conference', 'super_bowl_halftime', 'super_bowl')
        },
    )


def get_round_label(event_type: str, round_tag: str) -> str:
    return get_round_config(event_type).round_labels.get(round_tag, round_tag)


def format_round_wins(event_type: str, round_wins: Mapping[str, int]) -> str:
    """Compact per-round win counts, e.g. ``1WC, 2D, 1C``."""
    config = get_round_config(event_type)
    parts = []
    for round_tag in config.round_order:
        count = round_wins.get(round_tag)
        if count:
            parts.append(f"{count}{config.round_abbrevs.get(round_tag, round_tag)}")
    return ', '.join(parts)
