#!/usr/bin/env python3
"""
Text extraction toolkit for the bite report scanner
Pure helpers that pull species, dates, distances and water temperature out of free text.

Every rule lives in an ordered table so individual entries can be tested on their own:
  - species: most specific name first, a matched span is consumed before general names run,
    so "striped marlin" yields only "striped marlin" and not the generic "marlin" as well
    (the marlin signal in metrics matches on the substring, so counts are unaffected)
  - dates: ISO, day-month-year, month-day-year, numeric M/D/Y or D/M/Y, in that order
"""
import re
import math
import logging
from datetime import date
from functools import lru_cache
from typing import FrozenSet, Iterable, List, Optional, Tuple, Union
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

SNIPPET_MAX_CHARS = 280

Number = Union[int, float]

# (pattern, canonical species) - evaluated top to bottom
SPECIES_PATTERNS: List[Tuple[str, str]] = [
    (r'striped\s+marlin', 'striped marlin'),
    (r'blue\s+marlin', 'blue marlin'),
    (r'black\s+marlin', 'black marlin'),
    (r'marlins?', 'marlin'),
    (r'yellow[\s-]?fin(?:\s+tunas?)?', 'yellowfin tuna'),
    (r'tunas?', 'tuna'),
    (r'dorados?', 'dorado'),
    (r'mahi(?:[\s-]?mahi)?', 'mahi mahi'),
    (r'wahoos?', 'wahoo'),
    (r'sailfish', 'sailfish'),
    (r'rooster[\s-]?fish', 'roosterfish'),
    (r'snappers?', 'snapper'),
    (r'amberjacks?', 'amberjack'),
]

RE_SPECIES: List[Tuple[re.Pattern, str]] = [
    (re.compile(rf'\b{pattern}\b', re.IGNORECASE), canonical) for pattern, canonical in SPECIES_PATTERNS
]

MONTHS = {
    'jan': 1, 'feb': 2, 'mar': 3, 'apr': 4, 'may': 5, 'jun': 6,
    'jul': 7, 'aug': 8, 'sep': 9, 'oct': 10, 'nov': 11, 'dec': 12,
}

MONTH_NAME = (
    r'(jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?'
    r'|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)'
)
ORDINAL = r'(?:st|nd|rd|th)?'

RE_DATE_ISO = re.compile(r'\b(\d{4})-(\d{2})-(\d{2})\b')
RE_DATE_DAY_MONTH = re.compile(
    rf'\b(\d{{1,2}}){ORDINAL}\s+(?:of\s+)?{MONTH_NAME}\b\.?,?\s+(\d{{4}})\b', re.IGNORECASE
)
RE_DATE_MONTH_DAY = re.compile(
    rf'\b{MONTH_NAME}\b\.?\s*(\d{{1,2}}){ORDINAL}\b,?\s*(\d{{4}})\b', re.IGNORECASE
)
RE_DATE_NUMERIC = re.compile(r'\b(\d{1,2})/(\d{1,2})/(\d{4}|\d{2})\b')

RE_URL_DATE_PATH = re.compile(r'/(\d{4})/(\d{1,2})/(\d{1,2})(?=/|$)')
RE_URL_DATE_ISO = re.compile(r'(?<!\d)(\d{4})-(\d{1,2})-(\d{1,2})(?!\d)')
RE_URL_DATE_MONTH_DAY = re.compile(rf'(?<![a-z]){MONTH_NAME}-(\d{{1,2}}){ORDINAL}-(\d{{4}})(?!\d)')
RE_URL_DATE_DAY_MONTH = re.compile(rf'(?<!\d)(\d{{1,2}}){ORDINAL}-{MONTH_NAME}-(\d{{4}})(?!\d)')

RE_DISTANCE = re.compile(
    r'\b(\d{1,3}(?:\.\d+)?)(?:\s*(?:-|–|to)\s*(\d{1,3}(?:\.\d+)?))?'
    r'\s*(?:-\s*)?(?:nautical\s+)?(?:miles?|mi|nmi|nm)\b',
    re.IGNORECASE,
)

RE_TEMP_FAHRENHEIT = re.compile(
    r'\b(\d{2,3}(?:\.\d)?)\s*(?:degrees?\s*)?(?:°\s*)?(?:f|fahrenheit)\b', re.IGNORECASE
)
RE_TEMP_PHRASE = re.compile(
    r'\bwater\s*temp(?:erature)?s?\s*(?:is|at|:)?\s*(\d{2,3}(?:\.\d)?)(?![\d.])'
    r'(?!\s*(?:degrees?\s*)?(?:°\s*)?c(?:elsius)?\b)',
    re.IGNORECASE,
)
RE_TEMP_CELSIUS = re.compile(
    r'\b(\d{1,2}(?:\.\d)?)\s*(?:degrees?\s*)?(?:°\s*)?(?:c|celsius)\b', re.IGNORECASE
)

RE_WHITESPACE_NORMALIZE = re.compile(r'\s+')

REPORT_WORDS: Tuple[str, ...] = ('report', 'trip', 'offshore', 'bite', 'release', 'released', 'landed', 'caught')
LISTING_WORDS: Tuple[str, ...] = REPORT_WORDS + ('charter',)
FEED_WORDS: Tuple[str, ...] = REPORT_WORDS + ('hooked', 'boated')


def extract_species(text: str) -> FrozenSet[str]:
    """Return the canonical species named in text"""
    if not text:
        return frozenset()
    remaining = text
    found = set()
    for pattern, canonical in RE_SPECIES:
        if pattern.search(remaining):
            found.add(canonical)
            # blank the span so "marlin" does not fire again inside "striped marlin"
            remaining = pattern.sub(lambda m: ' ' * len(m.group(0)), remaining)
    return frozenset(found)


def _build_date(year: int, month: int, day: int) -> Optional[str]:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _month_number(name: str) -> int:
    return MONTHS[name[:3].lower()]


def _expand_year(raw: str) -> int:
    year = int(raw)
    if len(raw) == 2:
        return 1900 + year if year >= 70 else 2000 + year
    return year


def _from_iso(match: re.Match) -> Optional[str]:
    return _build_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))


def _from_day_month(match: re.Match) -> Optional[str]:
    return _build_date(int(match.group(3)), _month_number(match.group(2)), int(match.group(1)))


def _from_month_day(match: re.Match) -> Optional[str]:
    return _build_date(int(match.group(3)), _month_number(match.group(1)), int(match.group(2)))


def _from_numeric(match: re.Match) -> Optional[str]:
    first, second = int(match.group(1)), int(match.group(2))
    year = _expand_year(match.group(3))
    if first > 12 and second <= 12:
        return _build_date(year, second, first)
    return _build_date(year, first, second)


DATE_RULES = [
    (RE_DATE_ISO, _from_iso),
    (RE_DATE_DAY_MONTH, _from_day_month),
    (RE_DATE_MONTH_DAY, _from_month_day),
    (RE_DATE_NUMERIC, _from_numeric),
]

URL_DATE_RULES = [
    (RE_URL_DATE_PATH, _from_iso),
    (RE_URL_DATE_ISO, _from_iso),
    (RE_URL_DATE_MONTH_DAY, _from_month_day),
    (RE_URL_DATE_DAY_MONTH, _from_day_month),
]


def _first_valid_date(text: str, rules) -> Optional[str]:
    for pattern, build in rules:
        for match in pattern.finditer(text):
            parsed = build(match)
            if parsed:
                return parsed
            logger.debug(f"Rejected impossible date '{match.group(0)}'")
    return None


def extract_iso_date(text: str) -> Optional[str]:
    """Find the first real calendar date in text, as YYYY-MM-DD"""
    if not text:
        return None
    return _first_valid_date(text, DATE_RULES)


def extract_iso_date_from_url(url: str) -> Optional[str]:
    """Infer a date from archive-style URL paths (/2021/10/07/ or feb-3-2020 slugs)"""
    if not url:
        return None
    path = urlparse(url).path.lower()
    return _first_valid_date(path, URL_DATE_RULES)


def _as_number(raw: str) -> Number:
    value = float(raw)
    return int(value) if value.is_integer() else value


def extract_distance_miles(text: str) -> Optional[Number]:
    """Distance offshore in miles; ranges like 20-25 miles are averaged and rounded"""
    if not text:
        return None
    match = RE_DISTANCE.search(text)
    if not match:
        return None
    low = _as_number(match.group(1))
    if not match.group(2):
        return low
    high = _as_number(match.group(2))
    return int(math.floor((low + high) / 2 + 0.5))


def extract_water_temp_f(text: str) -> Optional[Number]:
    """Water temperature in Fahrenheit (explicit F, then a water-temp phrase, then Celsius)"""
    if not text:
        return None
    match = RE_TEMP_FAHRENHEIT.search(text)
    if match:
        return _as_number(match.group(1))
    match = RE_TEMP_PHRASE.search(text)
    if match:
        return _as_number(match.group(1))
    match = RE_TEMP_CELSIUS.search(text)
    if match:
        return round(float(match.group(1)) * 9 / 5 + 32, 1)
    return None


def compact_snippet(text: str) -> str:
    """Collapse whitespace and cut to the storage limit"""
    if not text:
        return ""
    return RE_WHITESPACE_NORMALIZE.sub(' ', text).strip()[:SNIPPET_MAX_CHARS]


@lru_cache(maxsize=None)
def _language_pattern(words: Tuple[str, ...]) -> re.Pattern:
    alternation = '|'.join(re.escape(word) for word in words)
    return re.compile(rf'\b(?:{alternation})s?\b', re.IGNORECASE)


def has_fishing_language(text: str, words: Iterable[str] = REPORT_WORDS) -> bool:
    """True when text reads like a fishing report (trip, bite, caught, ...)"""
    if not text:
        return False
    return bool(_language_pattern(tuple(words)).search(text))
