"""
Listing orchestrator - drives one listing URL through the pipeline.

Sequences cookie reuse, block detection, cookie minting, retry and field
extraction per site, and reduces every run to a single OutcomeRecord.
"""

from pathlib import Path
from typing import Dict, Optional, Type, Union
import logging

from .base import (
    Colors,
    ErrorKind,
    ExtractionRule,
    ListingContext,
    ListingRequest,
    OutcomeRecord,
    SiteConfig,
    SiteKind,
)
from .blocking import BlockDetector
from .config import SITES, extract_lot_id, resolve_site_kind
from .cookies import CookieStore
from .crawlers.dispatcher import RequestDispatcher
from .crawlers.minter import ExternalCookieMinter, ExternalProcessRunner
from .outcome_log import FileOutcomeSink, OutcomeSink
from .sites import CopartLotDetailsRule, IaaiMarkupRule

logger = logging.getLogger(__name__)


# Registry of extraction rules
# Swap a rule here when a site changes its payload
RULE_REGISTRY: Dict[SiteKind, Type[ExtractionRule]] = {
    SiteKind.COPART: CopartLotDetailsRule,
    SiteKind.IAAI: IaaiMarkupRule,
}

DEFAULT_COOKIE_FILE_NAME = 'cookies_file.txt'

ERROR_DESCRIPTIONS = {
    ErrorKind.URL_NOT_RECOGNIZED: 'Wrong URL',
    ErrorKind.LOT_ID_EXTRACTION_FAILED: 'Could not extract lot ID',
    ErrorKind.EXTERNAL_MINTER_INVALID_OUTPUT: 'Node.js output is not valid JSON.',
    ErrorKind.REDIRECT_INDICATES_MISSING_LOT: 'Lot is not exist',
}

SITE_ERROR_DESCRIPTIONS = {
    (SiteKind.COPART, ErrorKind.EXTERNAL_MINTER_FAILED):
        'Failed to obtain necessary cookies from Node.js (potential ban).',
    (SiteKind.IAAI, ErrorKind.EXTERNAL_MINTER_FAILED):
        'Failed to obtain cookies from Node.js for IAAI.',
    (SiteKind.COPART, ErrorKind.ALL_EXTRACTION_ATTEMPTS_FAILED):
        'Failed to retrieve data from Copart (empty or unparsable response).',
    (SiteKind.IAAI, ErrorKind.ALL_EXTRACTION_ATTEMPTS_FAILED):
        'Could not extract all data from IAAI HTML',
}


def describe_error(kind: ErrorKind, site_kind: Optional[SiteKind] = None) -> str:
    """Human-readable error_desc for a failure kind."""
    return SITE_ERROR_DESCRIPTIONS.get((site_kind, kind)) or ERROR_DESCRIPTIONS.get(kind, kind.value)


class ListingOrchestrator:
    """
    Runs the escalation pipeline for a single listing URL.

    Usage:
        orchestrator = ListingOrchestrator(dispatcher, minter, cookie_dir)
        outcome = orchestrator.run('https://www.copart.com/lot/41234567/...')
        print(outcome.to_dict())

    Copart:  fetch with stored cookies -> (blocked) mint -> data or retry -> extract
    IAAI:    mint -> fetch with minted cookies -> redirect check -> extract
    """

    def __init__(
        self,
        dispatcher: RequestDispatcher,
        minter: ExternalCookieMinter,
        cookie_dir: Union[str, Path],
        cookie_file_name: str = DEFAULT_COOKIE_FILE_NAME,
        sink: Optional[OutcomeSink] = None,
        rules: Optional[Dict[SiteKind, ExtractionRule]] = None,
        sites: Optional[Dict[SiteKind, SiteConfig]] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            dispatcher: HTTP dispatcher
            minter: External cookie minter
            cookie_dir: Directory holding the per-site cookie jars
            cookie_file_name: Base jar file name; the site suffix is appended
            sink: Destination for terminal outcome records
            rules: Extraction rules per site (defaults to RULE_REGISTRY)
            sites: Site configurations (defaults to SITES)
        """
        self.dispatcher = dispatcher
        self.minter = minter
        self.cookie_dir = Path(cookie_dir)
        self.cookie_file_name = cookie_file_name
        self.sink = sink
        self.sites = sites or SITES
        self.rules = rules or {kind: rule_class() for kind, rule_class in RULE_REGISTRY.items()}
        self.detectors = {
            kind: BlockDetector(config.block_markers or None)
            for kind, config in self.sites.items()
        }

    def cookie_path(self, site_kind: SiteKind) -> Path:
        """Jar file for a site, e.g. cookies_file.txt.copart.txt."""
        config = self.sites[site_kind]
        return self.cookie_dir / f"{self.cookie_file_name}{config.cookie_suffix}"

    def _emit(self, name: str, record: dict):
        if self.sink is not None:
            self.sink.emit(name, record)

    def _fail(
        self,
        ctx: ListingContext,
        kind: ErrorKind,
        sink_name: str,
        **extra,
    ) -> OutcomeRecord:
        outcome = OutcomeRecord.fail(
            ctx.request.url, kind, describe_error(kind, ctx.request.site_kind)
        )
        logger.error(f"{Colors.red('[ERR]')} {kind.value}: {outcome.error_desc} ({ctx.request.url})")
        record = {
            'error_kind': kind.value,
            'error_desc': outcome.error_desc,
            'url': ctx.request.url,
            'current_cookies_from_minter': ctx.minted_cookies,
            'response': ctx.payload,
            'debug': ctx.trace_dicts(),
        }
        record.update(extra)
        self._emit(sink_name, record)
        return outcome

    def _succeed(self, ctx: ListingContext, result, sink_name: str, comment: str) -> OutcomeRecord:
        outcome = OutcomeRecord.ok(ctx.request.url, result)
        logger.info(
            f"{Colors.green('[OK]')} {result.year} | {result.location} | {result.branch_seller} "
            f"| {result.engine} | {result.fuel} {Colors.gray(f'({comment})')}"
        )
        self._emit(sink_name, {
            'comment': comment,
            'result': outcome.to_dict(),
            'current_cookies_from_minter': ctx.minted_cookies,
            'response': ctx.payload,
            'debug': ctx.trace_dicts(),
        })
        return outcome

    def run(self, url: str) -> OutcomeRecord:
        """
        Main entry point - resolve the site and run its pipeline.

        Args:
            url: Listing URL

        Returns:
            OutcomeRecord with either the five fields or a typed failure
        """
        site_kind = resolve_site_kind(url or '')
        if site_kind is None or site_kind not in self.sites:
            kind = ErrorKind.URL_NOT_RECOGNIZED
            logger.error(f"{Colors.red('[ERR]')} {kind.value}: {url}")
            outcome = OutcomeRecord.fail(url, kind, describe_error(kind))
            self._emit('unrecognized_bad', outcome.to_dict())
            return outcome

        ctx = ListingContext(request=ListingRequest(url=url, site_kind=site_kind))
        logger.info(f"\n{Colors.cyan('❯❯❯')}")
        logger.info(f"Parsing {Colors.bold(self.sites[site_kind].name)} listing {Colors.gray(url)}")

        if site_kind == SiteKind.COPART:
            return self._run_copart(ctx)
        return self._run_iaai(ctx)

    def _run_copart(self, ctx: ListingContext) -> OutcomeRecord:
        config = self.sites[SiteKind.COPART]
        rule = self.rules[SiteKind.COPART]
        detector = self.detectors[SiteKind.COPART]
        store = CookieStore(self.cookie_path(SiteKind.COPART))
        jar_path = store.path

        # INITIAL_FETCH
        lot_id = extract_lot_id(ctx.request.url)
        if not lot_id:
            return self._fail(ctx, ErrorKind.LOT_ID_EXTRACTION_FAILED, 'copart_bad')
        ctx = ctx.with_lot_id(lot_id)
        endpoint = config.lot_details_url.format(lot_id=lot_id)

        response = self.dispatcher.send(endpoint, config.headers, jar_path)
        ctx = ctx.with_payload(response.body).record(
            'Initial fetch (stored cookies)', store.serialize()
        )

        # BLOCK_CHECK
        if detector.is_blocked(ctx.payload):
            logger.info(f"   {Colors.yellow('[BLOCKED]')} lot {lot_id}: escalating to minter")

            # MINT
            mint = self.minter.mint_copart(config.minter_script, lot_id, store.serialize())
            ctx = ctx.with_minted_cookies(mint.cookie_header).with_payload(mint.data)
            ctx = ctx.record('Minter attempt', store.serialize())

            result = rule.extract(ctx.payload) if mint.ok else None
            if result is not None:
                return self._succeed(ctx, result, 'copart_good', 'minter provided direct data')

            if mint.cookies:
                # RETRY_FETCH
                response = self.dispatcher.send(
                    endpoint, config.headers, jar_path, extra_cookie=mint.cookie_header
                )
                ctx = ctx.with_payload(response.body).record(
                    'Retry fetch (minted cookies)', store.serialize()
                )
            else:
                store.delete()
                return self._fail(
                    ctx, mint.error or ErrorKind.EXTERNAL_MINTER_FAILED, 'copart_bad'
                )

        # EXTRACT
        result = rule.extract(ctx.payload)
        if result is not None:
            comment = 'direct fetch after minted cookies' if ctx.minted_cookies else 'direct fetch'
            return self._succeed(ctx, result, 'copart_good', comment)
        return self._fail(ctx, ErrorKind.ALL_EXTRACTION_ATTEMPTS_FAILED, 'copart_bad')

    def _run_iaai(self, ctx: ListingContext) -> OutcomeRecord:
        config = self.sites[SiteKind.IAAI]
        rule = self.rules[SiteKind.IAAI]
        store = CookieStore(self.cookie_path(SiteKind.IAAI))

        # MINT
        mint = self.minter.mint_iaai(config.minter_script, ctx.request.url)
        ctx = ctx.with_minted_cookies(mint.cookie_header).record('Minter attempt', store.serialize())
        if not mint.ok or not mint.cookies:
            return self._fail(ctx, mint.error or ErrorKind.EXTERNAL_MINTER_FAILED, 'iaai_bad')

        # FETCH
        response = self.dispatcher.send(
            ctx.request.url, config.headers, store.path, extra_cookie=mint.cookie_header
        )
        ctx = ctx.with_payload(response.body).record('Fetch (minted cookies)', store.serialize())

        # REDIRECT_CHECK
        if config.redirect_marker and config.redirect_marker in ctx.payload:
            return self._fail(ctx, ErrorKind.REDIRECT_INDICATES_MISSING_LOT, 'iaai_bad')

        # EXTRACT
        result = rule.extract(ctx.payload)
        if result is not None:
            return self._succeed(ctx, result, 'iaai_good', 'minted cookies')
        return self._fail(
            ctx, ErrorKind.ALL_EXTRACTION_ATTEMPTS_FAILED, 'iaai_dont_see', html=ctx.payload
        )


def build_orchestrator(
    settings,
    runner: Optional[ExternalProcessRunner] = None,
    sink: Optional[OutcomeSink] = None,
) -> ListingOrchestrator:
    """
    Wire an orchestrator from application settings.

    Args:
        settings: api.config.Settings (or anything with the same fields)
        runner: Optional process runner for the minter
        sink: Optional outcome sink (defaults to log files under outcome_log_dir)
    """
    sink = sink or FileOutcomeSink(settings.outcome_log_dir)
    dispatcher = RequestDispatcher(timeout=settings.http_timeout, proxy=settings.proxy_url)
    minter = ExternalCookieMinter(
        script_dir=settings.minter_script_dir,
        interpreter=settings.minter_interpreter,
        timeout=settings.minter_timeout,
        runner=runner,
        sink=sink,
    )
    return ListingOrchestrator(
        dispatcher=dispatcher,
        minter=minter,
        cookie_dir=settings.cookie_dir,
        cookie_file_name=settings.cookie_file_name,
        sink=sink,
    )


# Convenience function for standalone usage

def parse_listing(url: str) -> OutcomeRecord:
    """
    Parse a single listing URL with the global settings.

    Args:
        url: Listing URL

    Returns:
        OutcomeRecord
    """
    from api.config import settings

    return build_orchestrator(settings).run(url)
