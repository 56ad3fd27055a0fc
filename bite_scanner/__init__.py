#!/usr/bin/env python3
"""
Cabo Bite Scanner - Modular Components
Fetch, parse, paginate, merge and aggregate fishing bite reports
"""

# Main scanner class
from .scanner import BiteReportScanner, BiteScannerError, ConfigurationError, NoDataError

# Core components
from .http_client import PoliteHttpClient
from .pagination import crawl_paginated, crawl_target
from .dedup import identity_key, merge_with_previous
from .metrics import build_metrics
from .models import NormalizedReport, ParseFailure, SourceStatus
from .parsers import parse_blog_listing, parse_card_feed, parse_json_feed, parse_static_page
from .extraction import (
    compact_snippet,
    extract_distance_miles,
    extract_iso_date,
    extract_iso_date_from_url,
    extract_species,
    extract_water_temp_f,
)

__all__ = [
    'BiteReportScanner',
    'BiteScannerError',
    'ConfigurationError',
    'NoDataError',
    'PoliteHttpClient',
    'crawl_paginated',
    'crawl_target',
    'identity_key',
    'merge_with_previous',
    'build_metrics',
    'NormalizedReport',
    'ParseFailure',
    'SourceStatus',
    'parse_static_page',
    'parse_blog_listing',
    'parse_json_feed',
    'parse_card_feed',
    'extract_species',
    'extract_iso_date',
    'extract_iso_date_from_url',
    'extract_distance_miles',
    'extract_water_temp_f',
    'compact_snippet',
]
