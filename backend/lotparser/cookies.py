"""
Cookie jar persistence helpers.

The jar file is a Netscape-format cookie file written by the HTTP transport
(see crawlers/dispatcher.py). The store only reads it back through a
line filter that keeps session identifiers and long auth tokens.
"""

import re
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Union
import logging

from .base import Cookie

logger = logging.getLogger(__name__)

# Values shorter than this are dropped unless the name mentions "session"
MIN_COOKIE_VALUE_LENGTH = 20

# Last "name value" token pair on a line
COOKIE_LINE_PATTERN = re.compile(r'([0-9a-zA-Z._-]+)[ \t]+([0-9a-zA-Z=/\-_+.:,]+)$')

_locks: Dict[str, threading.RLock] = {}
_locks_guard = threading.Lock()


@contextmanager
def jar_lock(path: Union[str, Path]) -> Iterator[None]:
    """
    Serialize access to one cookie jar file.

    Reentrant, so a dispatch can reload the jar for tracing while it
    already holds the lock.
    """
    key = str(Path(path).resolve())
    with _locks_guard:
        lock = _locks.setdefault(key, threading.RLock())
    with lock:
        yield


def keep_cookie(name: str, value: str) -> bool:
    """Return True for cookies worth replaying: long values or session ids."""
    return len(value) >= MIN_COOKIE_VALUE_LENGTH or 'session' in name.lower()


def serialize_cookies(cookies: Iterable[Cookie]) -> str:
    """
    Join cookies into a Cookie header value.

    Examples:
        [Cookie('a', '1'), Cookie('b', '2')] -> "a=1; b=2"
        [] -> ""
    """
    return '; '.join(f'{c.name}={c.value}' for c in cookies)


def cookies_from_items(items) -> List[Cookie]:
    """
    Build cookies from a list of {name, value} mappings.

    Items missing either key are skipped. Later duplicates replace the
    value of earlier ones but keep their position.
    """
    jar: Dict[str, Cookie] = {}
    for item in items or []:
        if not isinstance(item, dict):
            continue
        name = item.get('name')
        value = item.get('value')
        if name is None or value is None:
            continue
        jar[str(name)] = Cookie(str(name), str(value))
    return list(jar.values())


class CookieStore:
    """Reads and resets the per-site cookie jar file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> List[Cookie]:
        """
        Read the jar file fresh and return the cookies that pass the filter.

        Never fails: a missing or unreadable file yields an empty jar.
        """
        with jar_lock(self.path):
            try:
                content = self.path.read_text(encoding='utf-8', errors='replace')
            except OSError:
                return []

        jar: Dict[str, Cookie] = {}
        for line in content.splitlines():
            match = COOKIE_LINE_PATTERN.search(line.rstrip('\r'))
            if not match:
                continue
            name, value = match.group(1), match.group(2)
            if keep_cookie(name, value):
                jar[name] = Cookie(name, value)
        return list(jar.values())

    def serialize(self) -> str:
        """Load the jar and format it as a Cookie header value."""
        return serialize_cookies(self.load())

    def delete(self) -> None:
        """Remove the jar file. Failures are ignored."""
        with jar_lock(self.path):
            try:
                self.path.unlink()
                logger.info(f"Deleted cookie jar {self.path}")
            except OSError:
                pass
