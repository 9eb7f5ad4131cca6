"""
Base data structures for the listing parser.

This module defines the request, cookie, extraction and outcome types
shared by every stage of the pipeline.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Dict, Optional, Any, Tuple


# ANSI color codes for terminal output
class Colors:
    """ANSI color codes for colorized pipeline summaries."""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    CYAN = '\033[96m'
    GRAY = '\033[90m'

    @staticmethod
    def paint(code: str, text) -> str:
        """Wrap text in an ANSI code, resetting afterwards."""
        return f"{code}{text}{Colors.RESET}"

    @staticmethod
    def green(text):
        return Colors.paint(Colors.GREEN, text)

    @staticmethod
    def yellow(text):
        return Colors.paint(Colors.YELLOW, text)

    @staticmethod
    def red(text):
        return Colors.paint(Colors.RED, text)

    @staticmethod
    def cyan(text):
        return Colors.paint(Colors.CYAN, text)

    @staticmethod
    def gray(text):
        return Colors.paint(Colors.GRAY, text)

    @staticmethod
    def bold(text):
        return Colors.paint(Colors.BOLD, text)


class SiteKind(Enum):
    """Supported auction listing sites."""
    COPART = "copart"
    IAAI = "iaai"


class ErrorKind(Enum):
    """Terminal failure kinds reported in an OutcomeRecord."""
    URL_NOT_RECOGNIZED = "UrlNotRecognized"
    LOT_ID_EXTRACTION_FAILED = "LotIdExtractionFailed"
    EXTERNAL_MINTER_FAILED = "ExternalMinterFailed"
    EXTERNAL_MINTER_INVALID_OUTPUT = "ExternalMinterInvalidOutput"
    REDIRECT_INDICATES_MISSING_LOT = "RedirectIndicatesMissingLot"
    ALL_EXTRACTION_ATTEMPTS_FAILED = "AllExtractionAttemptsFailed"


@dataclass
class SiteConfig:
    """Static configuration for one auction site."""
    name: str                           # Display name
    kind: SiteKind
    host: str                           # Host substring used to recognize URLs
    cookie_suffix: str                  # Appended to the base cookie file name
    minter_script: str                  # External minter script file name
    headers: Dict[str, str] = field(default_factory=dict)
    block_markers: Tuple[str, ...] = ()
    lot_details_url: Optional[str] = None   # Template with {lot_id}
    redirect_marker: Optional[str] = None   # Body marker for a vanished lot


@dataclass(frozen=True)
class ListingRequest:
    """A listing URL and the site it belongs to."""
    url: str
    site_kind: SiteKind


@dataclass(frozen=True)
class Cookie:
    name: str
    value: str


@dataclass(frozen=True)
class RawResponse:
    """Body returned by a single dispatch."""
    body: str
    status_code: Optional[int] = None
    error: Optional[str] = None     # Transport error text, if any


@dataclass(frozen=True)
class ExtractionResult:
    """The five mandatory vehicle fields."""
    year: str
    location: str
    branch_seller: str
    engine: str
    fuel: str

    FIELDS = ('year', 'location', 'branch_seller', 'engine', 'fuel')

    @classmethod
    def from_fields(cls, values: Dict[str, Any]) -> Optional['ExtractionResult']:
        """
        Build a result from raw field values.

        Values are converted to strings and whitespace-trimmed. Returns None
        if any field is missing or empty, so partial results never escape.
        """
        cleaned = {}
        for name in cls.FIELDS:
            value = values.get(name)
            if value is None:
                return None
            value = str(value).strip()
            if not value:
                return None
            cleaned[name] = value
        return cls(**cleaned)

    def to_dict(self) -> Dict[str, str]:
        return {
            'year': self.year,
            'location': self.location,
            'branchSeller': self.branch_seller,
            'engine': self.engine,
            'fuel': self.fuel,
        }


@dataclass(frozen=True)
class AttemptTrace:
    """Diagnostic record of one pipeline stage."""
    label: str
    jar_snapshot: str
    minted_cookies: str
    response: str

    def to_dict(self) -> Dict[str, str]:
        return {
            'name': self.label,
            'current_cookies_file_content': self.jar_snapshot,
            'current_cookies_from_minter': self.minted_cookies,
            'response': self.response,
        }


@dataclass(frozen=True)
class OutcomeRecord:
    """Final value of one orchestration run: a result or a typed failure."""
    url: str
    result: Optional[ExtractionResult] = None
    error_kind: Optional[ErrorKind] = None
    error_desc: Optional[str] = None

    @classmethod
    def ok(cls, url: str, result: ExtractionResult) -> 'OutcomeRecord':
        return cls(url=url, result=result)

    @classmethod
    def fail(cls, url: str, kind: ErrorKind, desc: str) -> 'OutcomeRecord':
        return cls(url=url, error_kind=kind, error_desc=desc)

    @property
    def success(self) -> bool:
        return self.result is not None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the public JSON shape."""
        if self.result is not None:
            data: Dict[str, Any] = self.result.to_dict()
            data['error'] = 0
            data['url'] = self.url
            return data
        return {
            'error': 1,
            'error_desc': self.error_desc,
            'url': self.url,
        }


@dataclass(frozen=True)
class ListingContext:
    """
    Request-scoped state threaded through the orchestration stages.

    Each stage returns a new context instead of mutating the previous one.
    Traces are append-only.
    """
    request: ListingRequest
    lot_id: Optional[str] = None
    minted_cookies: str = ''
    payload: str = ''
    traces: Tuple[AttemptTrace, ...] = ()

    def with_lot_id(self, lot_id: str) -> 'ListingContext':
        return replace(self, lot_id=lot_id)

    def with_payload(self, payload: str) -> 'ListingContext':
        return replace(self, payload=payload)

    def with_minted_cookies(self, cookies: str) -> 'ListingContext':
        return replace(self, minted_cookies=cookies)

    def record(self, label: str, jar_snapshot: str) -> 'ListingContext':
        """Append a trace entry for the current payload and minted cookies."""
        trace = AttemptTrace(
            label=label,
            jar_snapshot=jar_snapshot,
            minted_cookies=self.minted_cookies or 'N/A',
            response=self.payload,
        )
        return replace(self, traces=self.traces + (trace,))

    def trace_dicts(self) -> List[Dict[str, str]]:
        return [t.to_dict() for t in self.traces]


class ExtractionRule(ABC):
    """
    Site-specific rule set that pulls the five vehicle fields from a payload.

    Rules are versioned so that when a site changes its payload, a new rule
    can replace the old one without touching transport or orchestration.

    Subclasses must implement:
    - extract_fields(): Return the raw field values found in the payload
    """

    site_kind: SiteKind
    version: str = 'v1'

    @abstractmethod
    def extract_fields(self, payload: str) -> Dict[str, Any]:
        """
        Find field values in a payload.

        Args:
            payload: Raw response body

        Returns:
            Dictionary keyed by ExtractionResult field names; missing
            fields are simply absent
        """
        pass

    def extract(self, payload: str) -> Optional[ExtractionResult]:
        """Return a complete result, or None if any field is missing."""
        return ExtractionResult.from_fields(self.extract_fields(payload or ''))

    def __repr__(self):
        return f"{self.__class__.__name__}(site={self.site_kind.value}, version={self.version})"
