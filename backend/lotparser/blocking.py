"""Classification of anti-bot challenge pages."""

from typing import Iterable, Optional

# Bodies shorter than this cannot be real lot data
MIN_BODY_LENGTH = 20

DEFAULT_BLOCK_MARKERS = (
    '_Incapsula_Resource',
    'Request unsuccessful',
    'Hacking attempt',
)


class BlockDetector:
    """
    Decides whether a response body is a block page.

    Empty, whitespace-only and truncated bodies count as blocked: a failed
    or cut-off fetch is handled exactly like an explicit challenge page.
    """

    def __init__(self, markers: Optional[Iterable[str]] = None, min_length: int = MIN_BODY_LENGTH):
        self.markers = tuple(markers) if markers is not None else DEFAULT_BLOCK_MARKERS
        self.min_length = min_length

    def is_blocked(self, body: Optional[str]) -> bool:
        body = body or ''
        if any(marker in body for marker in self.markers):
            return True
        if not body.strip():
            return True
        return len(body) < self.min_length
