"""Parser module for deriving show names and seasons from release names.

Release folders and files are named by humans and release groups, e.g.::

    [SubsPlease] Frieren S01 (1080p) [HEVC]
    One.Piece.Film.Red.2022.1080p.AMZN.WEB-DL.DDP5.1.H.264-VARYG.mkv

``parse_release_name`` turns these into a clean name plus an optional
season.  It is a pure function and never raises; the worst case is the
trimmed input with no season.
"""
import re
from dataclasses import dataclass
from typing import Callable

from .models import ParseResult


# ---------------------------------------------------------------------------
# Normalization patterns
# ---------------------------------------------------------------------------

# Trailing video extension (fixed list, independent of classifier config)
_VIDEO_EXT = re.compile(r'\.(?:mkv|mp4|avi|m4v|mov|wmv|webm|flv|m2ts)$', re.IGNORECASE)

# Leading [Group] tags
_GROUP_TAG = re.compile(r'^\s*\[[^\]]*\]\s*')

# Release year; a trailing "p" means a resolution, not a year
_YEAR = re.compile(r'(?<!\d)(19[7-9]\d|20[0-2]\d|2030)(?![\dp])', re.IGNORECASE)

# Version revisions: v2, 05v3
_VERSION = re.compile(r'(?:(?<=\d)|\b)v\d+\b')

# Episode ranges: (01-24), E01-E24, EP01-EP11, " - 00-23"
_EPISODE_RANGES = [
    re.compile(r'\s*\(\d+\s*-\s*\d+\)'),
    re.compile(r'\s*\bEP?\s?\d+\s?-\s?EP?\s?\d+\b', re.IGNORECASE),
    re.compile(r'\s+-\s*\d+-\d+\b'),
]

# Trailing bracketed/parenthesized tags, one level of nesting: [1080p], [Batch (BD)]
_TRAILING_BRACKET = re.compile(
    r'\s*[\[\(](?:[^\[\]\(\)]|[\[\(][^\[\]\(\)]*[\]\)])*[\]\)]\s*$'
)

# Technical keywords that always trail the show name
_TECH_KEYWORDS = (
    r'1080p|720p|480p|2160p|4K'
    r'|BD|Blu-?Ray'
    r'|WEB-?DL|WEB-?Rip'
    r'|HEVC|x264|x265|AV1'
    r'|FLAC|AAC|DDP\d(?:\.\d)?'
    r'|DUAL|MULTI'
    r'|Batch|Complete|REMUX'
    r'|Multi-?Subs?|Multiple\s+Subtitles?|Subbed'
    r'|NF|AMZN|CR'
)
_TECH_TAIL = re.compile(
    r'(?:^|\s+)(?:' + _TECH_KEYWORDS + r')(?=[\s\-\[\(]|$).*$',
    re.IGNORECASE,
)

_LEADING_DASH = re.compile(r'^\s*-+\s*')
_TRAILING_DASH = re.compile(r'\s*-+\s*$')
_MULTI_SPACE = re.compile(r'\s+')

MAX_SEASON_DIGITS = 4

ROMAN_NUMERALS = {
    "II": 2, "III": 3, "IV": 4, "V": 5,
    "VI": 6, "VII": 7, "VIII": 8, "IX": 9,
}


# ---------------------------------------------------------------------------
# Season rules
# ---------------------------------------------------------------------------

def _season_number(match: re.Match) -> int | None:
    """Numeric value of the first group ("01" -> 1, "00" -> 0).

    Runs longer than MAX_SEASON_DIGITS are not a season.
    """
    digits = match.group(1).lstrip('0')
    if len(digits) > MAX_SEASON_DIGITS:
        return None
    return int(digits or '0')


def _roman_season(match: re.Match) -> int | None:
    return ROMAN_NUMERALS.get(match.group(1).upper())


@dataclass(frozen=True)
class SeasonRule:
    """One way of spelling a season in a release name.

    *pattern* finds the token, *extract* turns the match into a season
    number and *strip* removes the token from the name.  When *truncate*
    is set everything from the token onward is dropped instead (episode
    codes are followed by episode titles, not by more of the show name).
    """
    name: str
    pattern: re.Pattern
    strip: re.Pattern
    extract: Callable[[re.Match], int | None] = _season_number
    truncate: bool = False

    def apply(self, text: str) -> tuple[int | None, str] | None:
        """Return ``(season, stripped_text)`` or None if the rule does not apply.

        A match whose token yields no season number does not apply.
        """
        match = self.pattern.search(text)
        if match is None:
            return None
        season = self.extract(match)
        if season is None:
            return None
        if self.truncate:
            return season, text[:match.start()]
        return season, self.strip.sub('', text)


# Priority order, first match wins
SEASON_RULES: tuple[SeasonRule, ...] = (
    SeasonRule(
        name="episode-code",
        pattern=re.compile(r'\bS(\d+)E(\d+)(?:-?E?(\d+))?', re.IGNORECASE),
        strip=re.compile(r'\s*-?\s*\bS\d+E\d+(?:-?E?\d+)?', re.IGNORECASE),
        truncate=True,
    ),
    SeasonRule(
        name="season-code",
        pattern=re.compile(r'\bS(\d+)\b', re.IGNORECASE),
        strip=re.compile(r'\s*-?\s*\bS\d+\b', re.IGNORECASE),
    ),
    SeasonRule(
        name="ordinal-season",
        pattern=re.compile(r'\b([2-9])(?:nd|rd|th)\s+Season\b', re.IGNORECASE),
        strip=re.compile(r'\s*-?\s*\b\d+(?:st|nd|rd|th)\s+Season\b', re.IGNORECASE),
    ),
    SeasonRule(
        name="season-word",
        pattern=re.compile(r'\bSeason\s*(\d+)', re.IGNORECASE),
        strip=re.compile(r'\s*-?\s*\bSeason\s*\d+', re.IGNORECASE),
    ),
    SeasonRule(
        name="part-number",
        pattern=re.compile(r'\bPart\s+(\d+)', re.IGNORECASE),
        strip=re.compile(r'\s*-?\s*\bPart\s+\d+', re.IGNORECASE),
    ),
    SeasonRule(
        name="part-roman",
        pattern=re.compile(r'\bPart\s+(VIII|VII|VI|IV|IX|III|II|V)\b', re.IGNORECASE),
        strip=re.compile(r'\s*-?\s*\bPart\s+(?:VIII|VII|VI|IV|IX|III|II|V)\b', re.IGNORECASE),
        extract=_roman_season,
    ),
    SeasonRule(
        name="cour",
        pattern=re.compile(r'\bCour\s+(\d+)', re.IGNORECASE),
        strip=re.compile(r'\s*-?\s*\bCour\s+\d+', re.IGNORECASE),
    ),
)


# ---------------------------------------------------------------------------
# Pipeline stages
# ---------------------------------------------------------------------------

def strip_group_tags(name: str) -> str:
    """Remove one or more leading ``[Group]`` tags."""
    while _GROUP_TAG.match(name):
        name = _GROUP_TAG.sub('', name, count=1)
    return name


def normalize_separators(name: str) -> str:
    """Turn dot-style and underscore-style names into spaced words."""
    dots = name.count('.')
    if dots > name.count(' ') and dots >= 2:
        name = name.replace('.', ' ')
    return name.replace('_', ' ')


def find_year(name: str) -> str | None:
    """Return the last plausible release year in *name*, if any."""
    matches = _YEAR.findall(name)
    return matches[-1] if matches else None


def extract_season(name: str) -> tuple[int | None, str]:
    """Apply ``SEASON_RULES`` in order.

    Returns ``(season, name)`` where *name* has the matched season token
    removed.  If no rule matches the name is returned unchanged.
    """
    for rule in SEASON_RULES:
        applied = rule.apply(name)
        if applied is not None:
            return applied
    return None, name


def strip_episode_ranges(name: str) -> str:
    for pattern in _EPISODE_RANGES:
        name = pattern.sub('', name)
    return name


def strip_trailing_brackets(name: str) -> str:
    while _TRAILING_BRACKET.search(name):
        name = _TRAILING_BRACKET.sub('', name)
    return name


def strip_year(name: str, year: str) -> str:
    name = re.sub(r'\(\s*' + year + r'\s*\)', '', name)
    return re.sub(r'\b' + year + r'\b', '', name)


def parse_release_name(raw: str) -> ParseResult:
    """
    Parse a release folder or file name.

    Args:
        raw: Release name as found on disk

    Returns:
        ParseResult with the clean name and the season, if one was found.
        The name may be empty when the input is pure metadata.
    """
    name = _VIDEO_EXT.sub('', raw.strip())
    name = strip_group_tags(name)
    name = normalize_separators(name)

    year = find_year(name)

    season, name = extract_season(name)

    name = _VERSION.sub('', name)
    name = strip_episode_ranges(name)
    name = strip_trailing_brackets(name)
    name = _TECH_TAIL.sub('', name)

    name = _TRAILING_DASH.sub('', name)
    name = _LEADING_DASH.sub('', name)
    if year:
        name = strip_year(name, year)

    name = _MULTI_SPACE.sub(' ', name).strip()
    # Removing the year can expose a dangling separator
    name = _TRAILING_DASH.sub('', name).strip()

    if year and name:
        name = f"{name} ({year})"

    return ParseResult(name=name, season=season)
