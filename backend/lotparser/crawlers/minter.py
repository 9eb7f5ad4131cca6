"""
External cookie minter.

Runs the headless-browser scripts that obtain cookies (and, for Copart,
sometimes the lot data itself) by behaving like a real browser. The
scripts are opaque: they receive positional arguments and print a JSON
payload on their last non-empty stdout line.
"""

import json
import os
import re
import signal
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Union
import logging

from ..base import Cookie, ErrorKind
from ..cookies import cookies_from_items, serialize_cookies
from ..outcome_log import OutcomeSink

logger = logging.getLogger(__name__)

# Data fragment embedded in markup: ...>{ ... }<...
DATA_FRAGMENT_PATTERN = re.compile(r'>\{(.*)\}<')


@dataclass(frozen=True)
class ProcessOutput:
    returncode: int
    stdout: str
    stderr: str = ''


class ExternalProcessRunner(Protocol):
    """Runs a command and captures its output, or returns None on failure."""

    def run(self, args: Sequence[str], cwd: Optional[Path], timeout: float) -> Optional[ProcessOutput]:
        ...


class SubprocessRunner:
    """
    Default runner backed by subprocess.Popen.

    The minter runs in its own session so that a timeout kills the whole
    process group, including any browser the script launched. Output is
    decoded as UTF-8 with undecodable bytes replaced.
    """

    def _kill_group(self, proc: subprocess.Popen):
        try:
            if hasattr(os, 'killpg'):
                os.killpg(proc.pid, signal.SIGKILL)
            else:
                proc.kill()
        except OSError as e:
            logger.warning(f"Failed to kill minter process group {proc.pid}: {e}")

    def run(self, args: Sequence[str], cwd: Optional[Path], timeout: float) -> Optional[ProcessOutput]:
        try:
            proc = subprocess.Popen(
                list(args),
                cwd=str(cwd) if cwd else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                encoding='utf-8',
                errors='replace',
                start_new_session=True,
            )
        except OSError as e:
            logger.warning(f"Minter could not be started ({args[0]}): {e}")
            return None

        try:
            stdout, stderr = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"Minter timed out after {timeout}s: {args[0]}")
            self._kill_group(proc)
            proc.communicate()
            return None
        return ProcessOutput(proc.returncode, stdout or '', stderr or '')


@dataclass(frozen=True)
class MintResult:
    """Cookies and optional data produced by one minter run."""
    cookies: List[Cookie] = field(default_factory=list)
    data: str = ''
    error: Optional[ErrorKind] = None

    @property
    def cookie_header(self) -> str:
        return serialize_cookies(self.cookies)

    @property
    def ok(self) -> bool:
        return self.error is None


def last_nonempty_line(text: str) -> str:
    for line in reversed((text or '').splitlines()):
        if line.strip():
            return line.strip()
    return ''


def unwrap_data_fragment(data) -> str:
    """
    Recover the JSON object embedded in the minter's markup ``data`` field.

    The fragment between ``>{`` and ``}<`` is re-wrapped in braces; if the
    delimiters are absent the result is an empty object.

    Examples:
        '<pre>{"a": 1}</pre>' -> '{"a": 1}'
        'no json here' -> '{}'
    """
    if not isinstance(data, str):
        return '{}'
    match = DATA_FRAGMENT_PATTERN.search(data)
    return '{' + match.group(1) + '}' if match else '{}'


class ExternalCookieMinter:
    """
    Invokes the minter scripts through an ExternalProcessRunner.

    The interpreter is explicit configuration; it is never guessed from the
    host environment.
    """

    def __init__(
        self,
        script_dir: Union[str, Path],
        interpreter: str = 'node',
        timeout: float = 90.0,
        runner: Optional[ExternalProcessRunner] = None,
        sink: Optional[OutcomeSink] = None,
    ):
        self.script_dir = Path(script_dir)
        self.interpreter = interpreter
        self.timeout = timeout
        self.runner = runner or SubprocessRunner()
        self.sink = sink

    def _emit(self, name: str, record: dict):
        if self.sink is not None:
            self.sink.emit(name, record)

    def mint(self, script: str, args: Sequence[str], site: str, with_data: bool = False) -> MintResult:
        """
        Run one minter script and parse its output.

        Args:
            script: Script file name inside script_dir
            args: Positional arguments for the script
            site: Site key used for debug sink names
            with_data: Whether to read the optional ``data`` field

        Returns:
            MintResult; ``error`` is set when the run failed or its output
            could not be decoded
        """
        command = [self.interpreter, str(self.script_dir / script), *args]
        logger.info(f"Running minter {script} for {site}")
        output = self.runner.run(command, self.script_dir, self.timeout)

        self._emit(f'nodejs_{site}_debug', {
            'command': command,
            'output': output.stdout if output else None,
            'return_var': output.returncode if output else None,
        })

        if output is None or output.returncode != 0:
            logger.warning(f"Minter {script} failed (exit={output.returncode if output else 'n/a'})")
            return MintResult(error=ErrorKind.EXTERNAL_MINTER_FAILED)

        line = last_nonempty_line(output.stdout)
        if not line:
            logger.warning(f"Minter {script} produced no output")
            return MintResult(error=ErrorKind.EXTERNAL_MINTER_FAILED)

        try:
            decoded = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning(f"Minter {script} output is not valid JSON: {e}")
            self._emit(f'nodejs_{site}_error', {
                'error': 'Minter output is not valid JSON.',
                'raw_output': line,
                'return_var': output.returncode,
            })
            return MintResult(error=ErrorKind.EXTERNAL_MINTER_INVALID_OUTPUT)

        # Bare cookie arrays are accepted alongside {"cookies": [...]}
        if isinstance(decoded, list):
            decoded = {'cookies': decoded}
        if not isinstance(decoded, dict):
            logger.warning(f"Minter {script} output is not a JSON object")
            return MintResult(error=ErrorKind.EXTERNAL_MINTER_INVALID_OUTPUT)

        cookies = cookies_from_items(decoded.get('cookies') if isinstance(decoded.get('cookies'), list) else [])
        data = unwrap_data_fragment(decoded.get('data', '')) if with_data else ''
        logger.info(f"Minter {script} returned {len(cookies)} cookie(s)")
        return MintResult(cookies=cookies, data=data)

    def mint_copart(self, script: str, lot_id: str, cookie_header: str) -> MintResult:
        """Copart: lot id and current jar cookies in; cookies and maybe data out."""
        return self.mint(script, [lot_id, cookie_header], site='copart', with_data=True)

    def mint_iaai(self, script: str, url: str) -> MintResult:
        """IAAI: listing URL in; cookies out."""
        return self.mint(script, [url], site='iaai')
