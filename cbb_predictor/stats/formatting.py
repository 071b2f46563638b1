"""Plain-text stats blocks handed to the score-prediction text model."""

from __future__ import annotations

from typing import List, Optional

from ..data.team_rankings import TeamHalfRankings, TeamRankingsStats
from ..models.team_stats import HalfStats, TeamStatsCache


def format_stat(value: Optional[float], suffix: str = "") -> str:
    if value is None:
        return "N/A"
    return f"{value:g}{suffix}"


def _split_line(label: str, ppg, allowed, margin) -> str:
    return f"    {label}: {format_stat(ppg)} PPG | {format_stat(allowed)} Allowed | {format_stat(margin)} Margin"


def _half_lines(title: str, half: TeamHalfRankings) -> List[str]:
    lines = [
        f"  {title}:",
        _split_line("Season Avg", half.ppg, half.points_allowed, half.margin),
        _split_line("Last 3 Games", half.ppg_last3, half.allowed_last3, half.margin_last3),
        _split_line("Last Game", half.ppg_last1, half.allowed_last1, half.margin_last1),
    ]
    if half.ppg_home is not None:
        lines.append(_split_line("At Home", half.ppg_home, half.allowed_home, half.margin_home))
    else:
        lines.append("    At Home: No home games played yet")
    if half.ppg_away is not None:
        lines.append(_split_line("On Road", half.ppg_away, half.allowed_away, half.margin_away))
    else:
        lines.append("    On Road: No away games played yet")
    return lines


def format_team_rankings_block(stats: TeamRankingsStats, context: str) -> str:
    """One team's TeamRankings splits; ``context`` is "home", "away" or "neutral"."""
    where = "at neutral site" if context == "neutral" else context
    lines = [f"**{stats.matched_name}** (playing {where})"]
    lines.extend(_half_lines("1ST HALF STATS", stats.first_half))
    lines.extend(_half_lines("2ND HALF STATS", stats.second_half))
    return "\n".join(lines)


def format_matchup_stats_for_prompt(
    home: Optional[TeamRankingsStats],
    away: Optional[TeamRankingsStats],
    is_neutral_site: bool = False,
) -> str:
    sections = ["=== TEAM HALF STATISTICS (from TeamRankings.com) ===", ""]

    if is_neutral_site:
        sections.extend(
            [
                "NEUTRAL SITE GAME - Neither team has home court advantage.",
                "GUIDANCE: Use Season Averages as primary reference. Away stats can provide",
                "secondary insight since both teams are away from home, but weight them less",
                "than season averages. Recent form (Last 3, Last 1) is valuable for momentum.",
                "",
            ]
        )

    if home:
        sections.append(format_team_rankings_block(home, "neutral" if is_neutral_site else "home"))
    else:
        sections.append("**Home Team**: No stats available in database")
    sections.append("")
    if away:
        sections.append(format_team_rankings_block(away, "neutral" if is_neutral_site else "away"))
    else:
        sections.append("**Away Team**: No stats available in database")

    sections.extend(
        [
            "",
            "--- STAT INTERPRETATION GUIDE ---",
            "- Season Avg = Full season performance",
            "- Last 3/Last 1 = Recent form and momentum indicators",
            "- At Home/On Road = Location-specific performance splits",
            "- Margin = Points scored minus points allowed (positive = outscoring opponents)",
            "- N/A = Data not available (team may not have played in that situation yet)",
        ]
    )
    if not is_neutral_site:
        sections.extend(
            [
                "",
                "NON-NEUTRAL GAME: Weight location-specific stats (At Home / On Road)",
                "   more heavily than season averages for this matchup.",
            ]
        )
    return "\n".join(sections)


def _half_stats_line(label: str, half: HalfStats) -> str:
    return f"    {label}: {half.scored:g} scored | {half.allowed:g} allowed ({half.games_played} games)"


def format_team_cache_block(cache: TeamStatsCache, context: str) -> str:
    """Game-log averages from a stats cache record."""
    where = "at neutral site" if context == "neutral" else context
    lines = [f"**{cache.team_name}** (playing {where}, {cache.games_count} games on file)"]
    for title, attr in (("1ST HALF", "first_half"), ("2ND HALF", "second_half")):
        lines.append(f"  {title}:")
        lines.append(_half_stats_line("Season Avg", getattr(cache.season_averages, attr)))
        lines.append(_half_stats_line("Last 5 Games", getattr(cache.last5_averages, attr)))
        lines.append(_half_stats_line("Opponent-Weighted", getattr(cache.weighted_averages, attr)))
    sos = cache.strength_of_schedule
    if sos:
        lines.append(
            f"  Strength of Schedule: {sos.average:g} avg opponent rating "
            f"({sos.weighted_average:g} recency-weighted, {sos.games_with_ratings} rated games)"
        )
    else:
        lines.append("  Strength of Schedule: N/A")
    return "\n".join(lines)
