#!/usr/bin/env python3
"""
Source parser adapters for the bite report scanner
Turn a raw HTML or JSON payload into NormalizedReport candidates using the extraction toolkit.

Adapters share one signature: (payload, source_url, source_name=...) -> ParseResult.
An adapter that accepts nothing from a payload emits exactly one ParseFailure with a body snippet.
"""
import json
import logging
from datetime import timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urljoin, urldefrag

from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from .extraction import (
    FEED_WORDS,
    LISTING_WORDS,
    REPORT_WORDS,
    compact_snippet,
    extract_distance_miles,
    extract_iso_date,
    extract_iso_date_from_url,
    extract_species,
    extract_water_temp_f,
    has_fishing_language,
)
from .models import NormalizedReport, ParseFailure, ParseResult, is_absolute_url, today_utc

logger = logging.getLogger(__name__)

NO_MATCH_ERROR = "No reports matched parser rules"
INVALID_JSON_ERROR = "Invalid JSON feed payload"
EMPTY_PAYLOAD_ERROR = "Empty payload"

HEADING_TAGS = ['h1', 'h2', 'h3', 'h4']
CONTAINER_TAGS = ['article', 'section', 'div']

# Static report page (single long page of dated paragraphs)
STATIC_BLOCK_SELECTOR = "article p, article li, .entry-content p, .post p, main p, .report p, .report li"
STATIC_MIN_CHARS = 45

# Blog / archive listing
LISTING_SELECTORS = ['article', '.post', '.entry', '.blog-post', '.report', 'li']
LISTING_TITLE_SELECTOR = "h1, h2, h3, .entry-title, .post-title"
LISTING_EXCERPT_SELECTOR = "p, .excerpt, .summary"
LISTING_META_SELECTOR = "time, .date, .meta, .post-date"
LISTING_MIN_CHARS = 35

# JSON feed
FEED_MIN_CHARS = 30
FEED_TEXT_FIELDS = ('title', 'summary', 'content_text')

# Card listing + JSON-LD
CARD_SELECTOR = "article, .report-card, .report-item, li"
CARD_LINK_SELECTORS = ["a[href*='/reports/']", "a[href*='report']", "a[href]"]
CARD_MIN_CHARS = 40
JSONLD_ARTICLE_TYPES = {'Article', 'BlogPosting', 'NewsArticle', 'Report', 'SocialMediaPosting'}

STATIC_SOURCE_NAME = "El Budster"
CARD_SOURCE_NAME = "FishingBooker"
FEED_SOURCE_NAME = "Pisces"


def normalize_link(link: Any, fallback: str) -> str:
    """Resolve link against the page URL; fall back to the page URL when unusable"""
    if not link or not isinstance(link, str):
        return fallback
    try:
        resolved, _fragment = urldefrag(urljoin(fallback, link.strip()))
    except ValueError:
        return fallback
    return resolved if is_absolute_url(resolved) else fallback


def parse_date_hint(value: Any) -> Optional[str]:
    """Read a structured date attribute (datetime=, datePublished) as YYYY-MM-DD"""
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = date_parser.parse(value)
    except (ValueError, OverflowError, TypeError):
        return extract_iso_date(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date().isoformat()


def build_report(source: str, text: str, report_date: Optional[str], link: str) -> NormalizedReport:
    return NormalizedReport(
        source=source,
        date=report_date or today_utc(),
        species=extract_species(text),
        notes=compact_snippet(text),
        link=link,
        distance_offshore_miles=extract_distance_miles(text),
        water_temp_f=extract_water_temp_f(text),
    )


def dedupe_reports(reports: Iterable[NormalizedReport]) -> List[NormalizedReport]:
    """Drop exact (date, notes, link) repeats, keeping first occurrence"""
    seen = set()
    unique = []
    for report in reports:
        key = (report.date, report.notes, report.link)
        if key in seen:
            continue
        seen.add(key)
        unique.append(report)
    return unique


def _finish(source_name: str, source_url: str, reports: List[NormalizedReport], payload: str,
            snippet_text: str) -> ParseResult:
    unique = dedupe_reports(reports)
    failures = []
    if not unique:
        error = NO_MATCH_ERROR if (payload or "").strip() else EMPTY_PAYLOAD_ERROR
        snippet = compact_snippet(snippet_text) or compact_snippet(payload or "")
        failures.append(ParseFailure(source_name, source_url, error, snippet))
        logger.warning(f"{source_name}: {error} at {source_url}")
    else:
        logger.debug(f"{source_name}: {len(unique)} reports from {source_url}")
    return ParseResult(reports=unique, failures=failures)


def _text(node) -> str:
    if node is None:
        return ""
    return collapse_whitespace(node.get_text(' '))


def collapse_whitespace(text: str) -> str:
    """Whitespace-collapse without truncating"""
    return ' '.join(text.split())


def _body_text(soup: BeautifulSoup) -> str:
    body = soup.body or soup
    return body.get_text(' ')


def parse_static_page(payload: str, source_url: str, source_name: str = STATIC_SOURCE_NAME) -> ParseResult:
    """Single page of report paragraphs, each paired with its nearest preceding heading"""
    soup = BeautifulSoup(payload or "", 'html.parser')
    reports = []

    for element in soup.select(STATIC_BLOCK_SELECTOR):
        heading = element.find_previous(HEADING_TAGS)
        text = ' '.join(part for part in (_text(heading), _text(element)) if part)
        if len(text) <= STATIC_MIN_CHARS:
            continue

        anchor = element.find('a', href=True)
        if anchor is None:
            container = element.find_parent(CONTAINER_TAGS)
            anchor = container.find('a', href=True) if container is not None else None
        link = normalize_link(anchor['href'] if anchor is not None else None, source_url)

        report_date = extract_iso_date(text) or extract_iso_date_from_url(link)
        has_signal = report_date is not None or bool(extract_species(text))
        if not has_signal and not has_fishing_language(text, REPORT_WORDS):
            continue
        reports.append(build_report(source_name, text, report_date, link))

    return _finish(source_name, source_url, reports, payload, _body_text(soup))


def _listing_candidate(root, source_url: str) -> Tuple[str, str, Optional[str]]:
    title = _text(root.select_one(LISTING_TITLE_SELECTOR))
    excerpt = _text(root.select_one(LISTING_EXCERPT_SELECTOR))
    meta = _text(root.select_one(LISTING_META_SELECTOR))
    anchor = root.find('a', href=True)
    link = normalize_link(anchor['href'] if anchor is not None else None, source_url)
    time_tag = root.select_one('time[datetime]')
    datetime_attr = time_tag.get('datetime') if time_tag is not None else None
    text = ' '.join(part for part in (title, excerpt, meta) if part)
    return text, link, datetime_attr


def parse_blog_listing(payload: str, source_url: str, source_name: str = FEED_SOURCE_NAME) -> ParseResult:
    """Blog or archive listing: one candidate per post/entry/list item container"""
    soup = BeautifulSoup(payload or "", 'html.parser')
    reports = []
    seen = set()

    for selector in LISTING_SELECTORS:
        for root in soup.select(selector):
            text, link, datetime_attr = _listing_candidate(root, source_url)
            if len(text) < LISTING_MIN_CHARS:
                continue

            key = (link, compact_snippet(text))
            if key in seen:
                continue
            seen.add(key)

            report_date = parse_date_hint(datetime_attr) or extract_iso_date(text) or extract_iso_date_from_url(link)
            has_signal = report_date is not None or bool(extract_species(text))
            if not has_signal and not has_fishing_language(text, LISTING_WORDS):
                continue
            reports.append(build_report(source_name, text, report_date, link))

    return _finish(source_name, source_url, reports, payload, _body_text(soup))


def strip_html(markup: str) -> str:
    if not markup:
        return ""
    return BeautifulSoup(markup, 'html.parser').get_text(' ')


def parse_json_feed(payload: str, source_url: str, source_name: str = FEED_SOURCE_NAME) -> ParseResult:
    """JSON Feed document ({"items": [...]}); invalid JSON becomes a single failure"""
    try:
        parsed = json.loads(payload)
    except (TypeError, ValueError):
        failure = ParseFailure(source_name, source_url, INVALID_JSON_ERROR, compact_snippet(payload or ""))
        logger.warning(f"{source_name}: {INVALID_JSON_ERROR} at {source_url}")
        return ParseResult(reports=[], failures=[failure])

    items = parsed.get('items') if isinstance(parsed, dict) else None
    if not isinstance(items, list):
        items = []

    reports = []
    for item in items:
        if not isinstance(item, dict):
            continue
        parts = [str(item.get(name) or '') for name in FEED_TEXT_FIELDS]
        parts.append(strip_html(str(item.get('content_html') or '')))
        text = collapse_whitespace(' '.join(part for part in parts if part))
        if len(text) < FEED_MIN_CHARS:
            continue

        link = normalize_link(item.get('url') or item.get('external_url'), source_url)
        report_date = (
            parse_date_hint(item.get('date_published'))
            or extract_iso_date(text)
            or extract_iso_date_from_url(link)
        )
        has_numeric_signal = extract_distance_miles(text) is not None or extract_water_temp_f(text) is not None
        has_signal = (
            report_date is not None
            or bool(extract_species(text))
            or has_fishing_language(text, FEED_WORDS)
            or has_numeric_signal
        )
        if not has_signal:
            continue
        reports.append(build_report(source_name, text, report_date, link))

    return _finish(source_name, source_url, reports, payload, payload or "")


def _card_link(root, source_url: str) -> str:
    for selector in CARD_LINK_SELECTORS:
        anchor = root.select_one(selector)
        if anchor is not None and anchor.get('href'):
            return normalize_link(anchor['href'], source_url)
    return source_url


def _card_candidates(soup: BeautifulSoup, source_url: str) -> List[Dict[str, Any]]:
    candidates = []
    for root in soup.select(CARD_SELECTOR):
        text = _text(root)
        if len(text) <= CARD_MIN_CHARS:
            continue
        time_tag = root.select_one('time[datetime]')
        candidates.append({
            'text': text,
            'link': _card_link(root, source_url),
            'date_hint': time_tag.get('datetime') if time_tag is not None else None,
            'structured': False,
        })
    return candidates


def _jsonld_nodes(data: Any) -> List[Dict[str, Any]]:
    """Flatten @graph wrappers, lists and ItemList entries into plain nodes"""
    nodes = []
    stack = [data]
    while stack:
        current = stack.pop(0)
        if isinstance(current, list):
            stack.extend(current)
            continue
        if not isinstance(current, dict):
            continue
        if '@graph' in current:
            stack.extend(current['@graph'] if isinstance(current['@graph'], list) else [current['@graph']])
        if 'itemListElement' in current:
            for element in current['itemListElement'] or []:
                if isinstance(element, dict) and isinstance(element.get('item'), dict):
                    stack.append(element['item'])
                else:
                    stack.append(element)
        nodes.append(current)
    return nodes


def _is_article(node: Dict[str, Any]) -> bool:
    node_type = node.get('@type')
    types = node_type if isinstance(node_type, list) else [node_type]
    return any(isinstance(t, str) and t in JSONLD_ARTICLE_TYPES for t in types)


def _jsonld_link(node: Dict[str, Any]) -> Optional[str]:
    main_entity = node.get('mainEntityOfPage')
    if isinstance(main_entity, dict):
        main_entity = main_entity.get('@id')
    for value in (node.get('url'), main_entity, node.get('@id')):
        if isinstance(value, str) and value:
            return value
    return None


def _jsonld_candidates(soup: BeautifulSoup, source_url: str) -> List[Dict[str, Any]]:
    candidates = []
    for script in soup.find_all('script', type='application/ld+json'):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            data = json.loads(raw.strip())
        except ValueError as e:
            logger.debug(f"Skipping malformed JSON-LD block on {source_url}: {e}")
            continue
        for node in _jsonld_nodes(data):
            if not _is_article(node):
                continue
            parts = [node.get('headline') or node.get('name'), node.get('description'), node.get('articleBody')]
            text = collapse_whitespace(' '.join(str(part) for part in parts if part))
            if not text:
                continue
            candidates.append({
                'text': text,
                'link': normalize_link(_jsonld_link(node), source_url),
                'date_hint': node.get('datePublished') or node.get('dateCreated'),
                'structured': True,
            })
    return candidates


def parse_card_feed(payload: str, source_url: str, source_name: str = CARD_SOURCE_NAME) -> ParseResult:
    """Listing of report cards plus any embedded JSON-LD article entries"""
    soup = BeautifulSoup(payload or "", 'html.parser')
    candidates = _card_candidates(soup, source_url) + _jsonld_candidates(soup, source_url)

    reports = []
    for candidate in candidates:
        text = candidate['text']
        link = candidate['link']
        species = extract_species(text)
        if candidate['structured']:
            # a datePublished alone does not make an article a fishing report
            if not species and not has_fishing_language(text, REPORT_WORDS):
                continue
            report_date = parse_date_hint(candidate['date_hint']) or extract_iso_date(text)
        else:
            report_date = parse_date_hint(candidate['date_hint']) or extract_iso_date(text)
            if report_date is None and not species:
                continue
        report_date = report_date or extract_iso_date_from_url(link)
        reports.append(build_report(source_name, text, report_date, link))

    return _finish(source_name, source_url, reports, payload, _body_text(soup))


PARSERS = {
    'static_page': parse_static_page,
    'blog_listing': parse_blog_listing,
    'json_feed': parse_json_feed,
    'card_feed': parse_card_feed,
}
