"""Shared team name normalization, similarity and slug-variant helpers.

Three sources spell the same school differently:

  NCAA scoreboard:  "Missouri St."   (slug: "missouri-st")
  TeamRankings:     "Missouri St"
  Ratings table:    "missouri-st"    (keyed by scoreboard slug or numeric id)

Every matching path in the package (stats cache resolver, scoreboard day
walk, TeamRankings lookup) goes through the functions here so the three
cannot silently diverge.
"""

from __future__ import annotations

import html as _html
import re
import unicodedata
from typing import Iterable, List

from rapidfuzz.distance import Levenshtein

_STRIP_WORD_RE = re.compile(r"\b(?:university|college|univ|u)\b")
_STATE_WORD_RE = re.compile(r"\bstate\b")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")

_NAME_SUFFIXES = ("university", "college", "state university", "state")
_NAME_PREFIXES = ("university of ", "the university of ", "college of ", "the ")
_GENERIC_LEAD_WORDS = {"university", "college", "the"}


def _fold(name: str) -> str:
    """HTML-decode, strip accents and lowercase."""
    s = _html.unescape(str(name))
    s = unicodedata.normalize("NFKD", s)
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    return s.lower()


def normalize_team_name(name: str) -> str:
    """Canonicalize a team name for comparison.

    Lowercases, drops ``university``/``college``/``univ``/``u``, shortens
    ``state`` to ``st`` and removes everything that is not ``[a-z0-9]``.

    Examples::

        >>> normalize_team_name("Missouri State")
        'missourist'
        >>> normalize_team_name("University of Arizona")
        'ofarizona'

    The rewrite is repeated until it stops changing the string, so
    ``normalize_team_name(normalize_team_name(x)) == normalize_team_name(x)``
    holds even for inputs like ``"col lege"``.
    """
    if not name:
        return ""
    current = _fold(name)
    while True:
        s = _STRIP_WORD_RE.sub("", current)
        s = _STATE_WORD_RE.sub("st", s)
        s = _NON_ALNUM_RE.sub("", s)
        if s == current:
            return s
        current = s


def to_slug(name: str) -> str:
    """Scoreboard-style slug: ``"St. John's (NY)"`` -> ``"st-johns-ny"``."""
    if not name:
        return ""
    s = _fold(name).strip()
    s = s.replace(".", "")
    s = re.sub(r"\s+", "-", s)
    return re.sub(r"[^a-z0-9-]", "", s)


def levenshtein_distance(a: str, b: str) -> int:
    """Case-insensitive edit distance."""
    return Levenshtein.distance(a.lower(), b.lower())


def similarity(a: str, b: str) -> float:
    """``1 - distance / max(len)``; symmetric, 1.0 for identical strings."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / longest


def is_likely_match(name1: str, name2: str, threshold: float = 0.85) -> bool:
    """True when two names very probably denote the same team.

    Similarity is measured on the normalized forms so shared boilerplate
    ("University of ...") cannot pull Arizona and Oregon together.
    """
    if name1.lower() == name2.lower():
        return True

    norm1 = normalize_team_name(name1)
    norm2 = normalize_team_name(name2)
    if norm1 == norm2:
        return True

    if similarity(norm1, norm2) >= threshold:
        return True

    # An empty normalized form is contained in everything
    if not norm1 or not norm2:
        return False
    return norm1 in norm2 or norm2 in norm1


def core_team_name(name: str) -> str:
    """Strip common suffixes/prefixes: ``"University of Oregon"`` -> ``"oregon"``."""
    core = _fold(name).strip()
    for suffix in _NAME_SUFFIXES:
        if core.endswith(" " + suffix):
            core = core[: -(len(suffix) + 1)].strip()
    for prefix in _NAME_PREFIXES:
        if core.startswith(prefix):
            core = core[len(prefix):].strip()
    return core


def _unique(values: Iterable[str]) -> List[str]:
    out: List[str] = []
    for v in values:
        if v and v not in out:
            out.append(v)
    return out


def team_name_variants(name: str) -> List[str]:
    """Alternate identifiers a team may be cached under.

    Returns, in priority order: the slug, the core-name slug, a
    ``<word>-st`` abbreviation for two-word "X State" names, the leading
    word, and finally the normalized form.
    """
    if not name or not name.strip():
        return []

    variants = [to_slug(name), to_slug(core_team_name(name))]

    words = _fold(name).split()
    if len(words) >= 2:
        if words[1] in ("state", "st", "st."):
            variants.append(f"{words[0].replace('.', '')}-st")
        lead = words[0].replace(".", "")
        if len(lead) > 3 and lead not in _GENERIC_LEAD_WORDS:
            variants.append(lead)

    variants.append(normalize_team_name(name))
    return _unique(variants)


def schedule_slug_variants(team_id: str, team_name: str) -> List[str]:
    """Wider slug set used when scanning scoreboards for a team's games."""
    slug = to_slug(team_name)
    variants = [slug, team_id, to_slug(core_team_name(team_name))]

    words = _fold(team_name).split()
    if len(words) >= 2:
        if words[1] in ("state", "st", "st."):
            variants.append(f"{words[0].replace('.', '')}-st")
        if "state" in words[1:]:
            state_idx = words.index("state", 1)
            variants.append("-".join(words[:state_idx]) + "-st")
        variants.append("-".join(words[:2]).replace(".", ""))
        variants.append(words[0].replace(".", ""))

    if "university" in words:
        variants.append("-".join(w for w in words if w != "university").replace(".", ""))

    if len(words) > 2 and words[0] == "university" and words[1] == "of":
        variants.append("-".join(words[2:]).replace(".", ""))

    return _unique(variants)
