"""
HTTP dispatcher with a persistent cookie jar.

Each call reads the site's Netscape-format cookie file, sends one request
with httpx, and writes the merged Set-Cookie state back to the same file.
HTTP error statuses are returned as ordinary bodies; only transport
failures are reported, and then as an empty body.
"""

from http.cookiejar import LoadError, MozillaCookieJar
from pathlib import Path
from typing import Dict, Optional, Union
import logging

import httpx

from ..base import RawResponse
from ..cookies import jar_lock

logger = logging.getLogger(__name__)


class RequestDispatcher:
    """
    Issues single HTTP requests against a cookie jar file.

    Redirects are not followed: the IAAI "object moved" body is only
    visible on the redirect response itself.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        proxy: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            timeout: Request timeout in seconds
            proxy: Optional proxy URL; requests go direct when unset
            transport: Optional httpx transport (used by tests)
        """
        self.timeout = timeout
        self.proxy = proxy
        self.transport = transport

    def _load_jar(self, path: Path) -> MozillaCookieJar:
        jar = MozillaCookieJar(str(path))
        if path.exists():
            try:
                jar.load(ignore_discard=True, ignore_expires=True)
            except (LoadError, OSError) as e:
                logger.warning(f"Ignoring unreadable cookie jar {path}: {e}")
        return jar

    def _save_jar(self, jar: MozillaCookieJar, path: Path):
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            jar.save(ignore_discard=True, ignore_expires=True)
        except OSError as e:
            logger.warning(f"Failed to save cookie jar {path}: {e}")

    def _cookie_header(
        self,
        cookies: httpx.Cookies,
        method: str,
        url: str,
        extra_cookie: Optional[str],
    ) -> Optional[str]:
        """Combine injected cookies with the jar's cookies for this URL."""
        probe = httpx.Request(method, url)
        cookies.set_cookie_header(probe)
        parts = [extra_cookie, probe.headers.get('cookie')]
        return '; '.join(p for p in parts if p) or None

    def _build_client(self, jar: MozillaCookieJar) -> httpx.Client:
        # Passing the jar itself (not httpx.Cookies) keeps Set-Cookie merges in it
        kwargs = {
            'cookies': jar,
            'verify': True,
            'follow_redirects': False,
            'timeout': self.timeout,
        }
        if self.transport is not None:
            kwargs['transport'] = self.transport
        elif self.proxy:
            kwargs['proxy'] = self.proxy
        return httpx.Client(**kwargs)

    def send(
        self,
        url: str,
        headers: Dict[str, str],
        cookie_jar_path: Union[str, Path],
        method: Optional[str] = None,
        data: Optional[str] = None,
        extra_cookie: Optional[str] = None,
    ) -> RawResponse:
        """
        Send one request and return the response body.

        Args:
            url: URL to request
            headers: Request headers
            cookie_jar_path: Cookie file read before and written after the exchange
            method: HTTP method; GET unless a POST body is supplied
            data: Optional POST body
            extra_cookie: Cookie header value sent ahead of the jar's cookies

        Returns:
            RawResponse; on transport failure the body is empty and
            ``error`` carries the reason
        """
        path = Path(cookie_jar_path)
        method = method or ('POST' if data is not None else 'GET')

        with jar_lock(path):
            jar = self._load_jar(path)
            cookies = httpx.Cookies(jar)
            request_headers = {
                k: v for k, v in headers.items() if k.lower() != 'cookie'
            }
            cookie_header = self._cookie_header(cookies, method, url, extra_cookie)
            if cookie_header:
                request_headers['cookie'] = cookie_header

            logger.debug(f"Dispatching {method} {url}")
            try:
                with self._build_client(jar) as client:
                    response = client.request(
                        method, url, headers=request_headers, content=data
                    )
            except httpx.HTTPError as e:
                logger.warning(f"Transport failure for {url}: {e}")
                return RawResponse(body='', error=str(e) or e.__class__.__name__)

            self._save_jar(jar, path)

        logger.debug(f"Got status {response.status_code} ({len(response.text)} chars) from {url}")
        return RawResponse(body=response.text, status_code=response.status_code)
