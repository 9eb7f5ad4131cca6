"""
IAAI extraction rule.

IAAI serves vehicle details as server-rendered HTML. Each field is pulled
with its own pattern, anchored to the label around it:

- year: the number at the start of the ``heading-2`` title
- location: value block after ``Vehicle Location:``
- branch seller: value span after ``Selling Branch:``
- engine: the list item right before the ``Transmission`` label
- fuel: value span after ``Fuel Type:``
"""

import re
from typing import Any, Dict

from ..base import ExtractionRule, SiteKind


FIELD_PATTERNS = {
    'year': re.compile(r'"heading-2">(\d+)'),
    'location': re.compile(
        r'Vehicle Location:</span>\s+<div\sclass="data-list__value">\s+<span>([^<]{5,45})<',
        re.M,
    ),
    'branch_seller': re.compile(
        r'Selling Branch:</span>\s+<span class="data-list__value">([^<]{5,45})</span>',
        re.M,
    ),
    'engine': re.compile(
        r'>([^<]+)</span>\s+</li>\s+<li class="data-list__item">\s+'
        r'<span class="data-list__label">Transmission',
        re.M,
    ),
    'fuel': re.compile(
        r'Fuel Type:</span>\s+<span class="data-list__value">\s+([^<]+)',
        re.M,
    ),
}


class IaaiMarkupRule(ExtractionRule):
    """Label-anchored pattern extraction over the vehicle detail page."""

    site_kind = SiteKind.IAAI
    version = 'vehicle-detail-markup-v1'

    def __init__(self, patterns=None):
        self.patterns = patterns or FIELD_PATTERNS

    def extract_fields(self, payload: str) -> Dict[str, Any]:
        fields = {}
        for field_name, pattern in self.patterns.items():
            match = pattern.search(payload)
            if match:
                fields[field_name] = match.group(1).strip()
        return fields
