"""
Copart extraction rule.

The lot-details endpoint returns JSON; the vehicle fields live under
``data.lotDetails`` with short key names:

    lcy  -> year
    yn   -> location (yard name)
    scn  -> branch seller
    egn  -> engine
    ft   -> fuel type
"""

import json
from typing import Any, Dict

from ..base import ExtractionRule, SiteKind


# Source key in lotDetails -> ExtractionResult field
LOT_DETAILS_KEYS = {
    'lcy': 'year',
    'yn': 'location',
    'scn': 'branch_seller',
    'egn': 'engine',
    'ft': 'fuel',
}


class CopartLotDetailsRule(ExtractionRule):
    """Structured lookup in the solr lot-details JSON."""

    site_kind = SiteKind.COPART
    version = 'lotdetails-solr-v1'

    def extract_fields(self, payload: str) -> Dict[str, Any]:
        try:
            document = json.loads(payload)
        except (json.JSONDecodeError, TypeError):
            return {}

        if not isinstance(document, dict) or not isinstance(document.get('data'), dict):
            return {}
        details = document['data'].get('lotDetails')
        if not isinstance(details, dict):
            return {}

        fields = {}
        for source_key, field_name in LOT_DETAILS_KEYS.items():
            value = details.get(source_key)
            if value is not None:
                fields[field_name] = value
        return fields
