#!/usr/bin/env python3
"""
Source targets
Static crawl configuration: each target is either a single page or a paginated series.
"""
import logging
from dataclasses import dataclass
from functools import partial
from typing import Callable, List, Union

from .models import ParseResult
from .parsers import parse_blog_listing, parse_card_feed, parse_json_feed, parse_static_page

logger = logging.getLogger(__name__)

SINGLE = 'single'
PAGINATED = 'paginated'

LISTING_FAMILY = 'listing'
ARCHIVE_FAMILY = 'archive'

Parser = Callable[[str, str], ParseResult]
UrlBuilder = Callable[[int], str]

FISHINGBOOKER_URL = "https://fishingbooker.com/reports/destination/mx/BS/{slug}?page={page}"
FISHINGBOOKER_DESTINATIONS = [
    # (label, slug, site page count)
    ("FishingBooker Cabo San Lucas", "cabo-san-lucas", 14),
    ("FishingBooker San Jose del Cabo", "san-jose-del-cabo", 10),
    ("FishingBooker La Paz", "la-paz", 8),
]
EL_BUDSTER_URL = "https://www.elbudster.com/report"
PISCES_REPORTS_URL = "https://www.piscessportfishing.com/fishing-reports/"
PISCES_FEED_URL = "https://blog.piscessportfishing.com/feed/json/?paged={page}"
CABO_SPORTFISHING_URL = "https://www.cabosportfishingreports.com/category/fishing-reports/page/{page}/"


@dataclass(frozen=True)
class SingleTarget:
    label: str
    url: str
    parse: Parser
    kind: str = SINGLE


@dataclass(frozen=True)
class PaginatedTarget:
    label: str
    url_builder: UrlBuilder
    parse: Parser
    max_pages: int
    family: str = LISTING_FAMILY
    kind: str = PAGINATED

    def page_url(self, page: int) -> str:
        return self.url_builder(page)


SourceTarget = Union[SingleTarget, PaginatedTarget]


def _format_url(template: str, page: int, **values) -> str:
    return template.format(page=page, **values)


def _cabo_sportfishing_url(page: int) -> str:
    # page 1 of a WordPress category lives at the bare category URL
    if page == 1:
        return CABO_SPORTFISHING_URL.split('page/')[0]
    return CABO_SPORTFISHING_URL.format(page=page)


def build_targets(crawl_config) -> List[SourceTarget]:
    """Targets for one run; page caps come from the per-family limits in crawl_config"""
    targets: List[SourceTarget] = [
        SingleTarget(
            label="El Budster",
            url=EL_BUDSTER_URL,
            parse=partial(parse_static_page, source_name="El Budster"),
        ),
    ]

    for label, slug, site_pages in FISHINGBOOKER_DESTINATIONS:
        targets.append(PaginatedTarget(
            label=label,
            url_builder=partial(_format_url, FISHINGBOOKER_URL, slug=slug),
            parse=partial(parse_card_feed, source_name=label),
            max_pages=min(site_pages, crawl_config.max_pages_listing),
            family=LISTING_FAMILY,
        ))

    targets.extend([
        SingleTarget(
            label="Pisces",
            url=PISCES_REPORTS_URL,
            parse=partial(parse_blog_listing, source_name="Pisces"),
        ),
        PaginatedTarget(
            label="Pisces Blog Feed",
            url_builder=partial(_format_url, PISCES_FEED_URL),
            parse=partial(parse_json_feed, source_name="Pisces"),
            max_pages=crawl_config.max_pages_archive,
            family=ARCHIVE_FAMILY,
        ),
        PaginatedTarget(
            label="Cabo Sportfishing Reports",
            url_builder=_cabo_sportfishing_url,
            parse=partial(parse_blog_listing, source_name="Cabo Sportfishing Reports"),
            max_pages=crawl_config.max_pages_archive,
            family=ARCHIVE_FAMILY,
        ),
    ])

    logger.debug(f"Built {len(targets)} crawl targets")
    return targets
