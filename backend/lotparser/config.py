"""
Site configurations for the supported auction sources.

Each site has a SiteConfig that defines:
- Host used to recognize listing URLs
- Request headers sent on direct fetches
- Cookie jar suffix and external minter script
- Block and redirect markers
"""

import re
from typing import Optional
from urllib.parse import urlparse

from .base import SiteConfig, SiteKind


USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/86.0.4240.111 Safari/537.36'
)
ACCEPT = (
    'text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,'
    'image/webp,image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.9'
)
ACCEPT_LANGUAGE = 'en,ru;q=0.9,uk;q=0.8'

# Numeric lot segment of a Copart listing URL
LOT_ID_PATTERN = re.compile(r'/lot/([0-9]+)')


# ============================================================
# SITE CONFIGURATIONS
# ============================================================

SITES = {
    SiteKind.COPART: SiteConfig(
        name='Copart',
        kind=SiteKind.COPART,
        host='copart.com',
        cookie_suffix='.copart.txt',
        minter_script='cookieCopart.js',
        headers={
            'authority': 'www.copart.com',
            'pragma': 'no-cache',
            'cache-control': 'no-cache',
            'upgrade-insecure-requests': '1',
            'user-agent': USER_AGENT,
            'accept': ACCEPT,
            'sec-fetch-site': 'none',
            'sec-fetch-mode': 'navigate',
            'sec-fetch-user': '?1',
            'sec-fetch-dest': 'document',
            'accept-language': ACCEPT_LANGUAGE,
        },
        block_markers=(
            '_Incapsula_Resource',
            'Request unsuccessful',
            'Hacking attempt',
        ),
        lot_details_url='https://www.copart.com/public/data/lotdetails/solr/{lot_id}',
    ),

    SiteKind.IAAI: SiteConfig(
        name='IAAI',
        kind=SiteKind.IAAI,
        host='iaai.com',
        cookie_suffix='.iaai.txt',
        minter_script='cookie.js',
        headers={
            'Connection': 'keep-alive',
            'Pragma': 'no-cache',
            'Cache-Control': 'no-cache',
            'Upgrade-Insecure-Requests': '1',
            'User-Agent': USER_AGENT,
            'Accept': ACCEPT,
            'Sec-Fetch-Site': 'same-origin',
            'Sec-Fetch-Mode': 'navigate',
            'Sec-Fetch-User': '?1',
            'Sec-Fetch-Dest': 'document',
            'Referer': 'https://www.iaai.com/VehicleSearch/SearchDetails?keyword=',
            'Accept-Language': ACCEPT_LANGUAGE,
        },
        redirect_marker='Object moved to',
    ),
}


# ============================================================
# HELPER FUNCTIONS
# ============================================================

def get_site_config(site_key) -> SiteConfig:
    """
    Get configuration for a site by its kind or key.

    Args:
        site_key: SiteKind or its string value (e.g., 'copart')

    Returns:
        SiteConfig for the site

    Raises:
        ValueError: If site_key is not found
    """
    try:
        kind = site_key if isinstance(site_key, SiteKind) else SiteKind(site_key)
    except ValueError:
        valid_keys = ', '.join(sorted(k.value for k in SITES))
        raise ValueError(f"Unknown site: '{site_key}'. Valid sites: {valid_keys}")
    return SITES[kind]


def extract_host(url: str) -> str:
    """
    Extract the host segment of a URL, with or without protocol.

    Examples:
        'https://www.iaai.com/VehicleDetail/1' -> 'www.iaai.com'
        'www.copart.com/lot/1' -> 'www.copart.com'
    """
    url = (url or '').strip()
    if not url.startswith(('http://', 'https://')):
        url = 'https://' + url
    parsed = urlparse(url)
    host = parsed.netloc or parsed.path.split('/')[0]
    return host.split(':')[0].lower()


def resolve_site_kind(url: str) -> Optional[SiteKind]:
    """Return the site a listing URL belongs to, or None if unsupported."""
    host = extract_host(url)
    for kind, config in SITES.items():
        if config.host in host:
            return kind
    return None


def extract_lot_id(url: str) -> Optional[str]:
    """
    Extract the Copart lot id from a listing URL.

    Examples:
        https://www.copart.com/lot/41234567/clean-title-2015-ford -> "41234567"
        https://www.copart.com/vehicleFinder -> None
    """
    match = LOT_ID_PATTERN.search(url)
    return match.group(1) if match else None


def list_sites() -> list:
    """List all site keys."""
    return [kind.value for kind in SITES]


def get_site_summary() -> list:
    """Get a summary of all sites for display."""
    summary = []
    for kind, config in SITES.items():
        summary.append({
            'key': kind.value,
            'name': config.name,
            'host': config.host,
            'minter_script': config.minter_script,
        })
    return summary
