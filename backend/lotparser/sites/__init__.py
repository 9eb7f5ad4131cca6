"""Site-specific extraction rules."""

from .copart import CopartLotDetailsRule
from .iaai import IaaiMarkupRule

__all__ = ['CopartLotDetailsRule', 'IaaiMarkupRule']
