"""Reduce recorded wins to one badge per cell, and to per-participant tallies."""
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from .engine import WinEvent
from .grid import Cell
from .rounds import ROUND_HIERARCHY, RoundTag, classify_win, split_win_type


def aggregate(win_events: Iterable[WinEvent], rank_table: Mapping[RoundTag, int] = ROUND_HIERARCHY,
              game_rounds: Optional[Mapping[int, str]] = None) -> Dict[Cell, RoundTag]:
    """Best round tag per winning cell.

    Forward and reverse wins of the same tier on one cell collapse to the
    tier's composite tag first (``score_change_both``); the composite then
    competes with the cell's other tiers by rank. Unclaimed wins are ignored.
    """
    game_rounds = game_rounds or {}
    tiers_by_cell: Dict[Cell, Dict] = OrderedDict()
    for event in win_events:
        if event.cell is None:
            continue
        tier, is_reverse = classify_win(event.win_type, game_rounds.get(event.game_id))
        flags = tiers_by_cell.setdefault(event.cell, OrderedDict()).setdefault(tier, [False, False])
        flags[1 if is_reverse else 0] = True

    badges = {}
    for cell, tiers in tiers_by_cell.items():
        best = None
        for tier, (has_forward, has_reverse) in tiers.items():
            tag = tier.tag_for(has_forward, has_reverse)
            if best is None or rank_table.get(tag, 0) > rank_table.get(best, 0):
                best = tag
        badges[cell] = best
    return badges


@dataclass
class LeaderboardEntry:
    participant: str
    wins: int = 0
    payout_total: float = 0
    forward_wins: int = 0
    reverse_wins: int = 0
    halftime_wins: int = 0
    # quarter boundary wins in hybrid pools
    quarter_wins: int = 0
    round_wins: Dict[str, int] = field(default_factory=dict)

    def to_dict(self):
        return {
            'participant': self.participant,
            'wins': self.wins,
            'forward_wins': self.forward_wins,
            'reverse_wins': self.reverse_wins,
            'halftime_wins': self.halftime_wins,
            'quarter_wins': self.quarter_wins,
            'payout_total': self.payout_total,
            'round_wins': dict(self.round_wins),
        }


def leaderboard(win_events: Iterable[WinEvent], game_rounds: Optional[Mapping[int, str]] = None) -> List[LeaderboardEntry]:
    game_rounds = game_rounds or {}
    entries: Dict[str, LeaderboardEntry] = {}
    for event in win_events:
        if event.cell is None:
            continue
        entry = entries.setdefault(event.participant_label, LeaderboardEntry(event.participant_label))
        entry.wins += 1
        if event.payout is not None:
            entry.payout_total += event.payout
        base, is_reverse = split_win_type(event.win_type)
        if is_reverse:
            entry.reverse_wins += 1
        else:
            entry.forward_wins += 1
        if base in ('halftime', 'hybrid_halftime'):
            entry.halftime_wins += 1
        if base.startswith('hybrid_'):
            entry.quarter_wins += 1
        tier, _ = classify_win(event.win_type, game_rounds.get(event.game_id))
        round_tag = (tier.reverse if is_reverse else tier.forward).value
        entry.round_wins[round_tag] = entry.round_wins.get(round_tag, 0) + 1

    ranked = sorted(entries.values(), key=lambda e: e.participant)
    return sorted(ranked, key=lambda e: -e.wins)
