"""
Auction listing parser for Copart and IAAI.

This package retrieves a vehicle record (year, location, selling branch,
engine, fuel type) from a listing URL:
- Reuses a persisted cookie jar per site
- Detects anti-bot block pages
- Falls back to an external headless-browser cookie minter
- Extracts the required fields with site-specific rules
"""

from .base import (
    ErrorKind,
    ExtractionResult,
    ExtractionRule,
    OutcomeRecord,
    SiteConfig,
    SiteKind,
)
from .config import SITES, get_site_config, resolve_site_kind
from .manager import ListingOrchestrator, build_orchestrator, parse_listing

__all__ = [
    'ErrorKind',
    'ExtractionResult',
    'ExtractionRule',
    'OutcomeRecord',
    'SiteConfig',
    'SiteKind',
    'SITES',
    'get_site_config',
    'resolve_site_kind',
    'ListingOrchestrator',
    'build_orchestrator',
    'parse_listing',
]
