"""
Pytest configuration and fixtures for listing parser tests.
"""

import json
from typing import List, Optional

import pytest

from lotparser.base import RawResponse
from lotparser.crawlers.minter import ExternalCookieMinter, ProcessOutput
from lotparser.manager import ListingOrchestrator
from lotparser.outcome_log import MemoryOutcomeSink


COPART_URL = "https://www.copart.com/lot/41234567/clean-title-2015-ford-focus-se-ca-van-nuys"
IAAI_URL = "https://www.iaai.com/VehicleDetail/38123456~US"

BLOCK_PAGE = (
    "<html><head><script src=\"/_Incapsula_Resource?SWJIYLWA=5074a744e2e3d891814e9a2dace20bd4\">"
    "</script></head><body>Request unsuccessful. Incapsula incident ID: 1234</body></html>"
)

COPART_LOT_JSON = json.dumps({
    "returnCode": 1,
    "returnCodeDesc": "Success",
    "data": {
        "lotDetails": {
            "ln": 41234567,
            "lcy": 2015,
            "mkn": "FORD",
            "yn": "CA - VAN NUYS",
            "scn": "Geico Insurance",
            "egn": "2.0L 4",
            "ft": "GAS",
        }
    },
})

IAAI_HTML = """<html><body>
<h1 class="heading-2">2018 TOYOTA CAMRY SE</h1>
<ul class="data-list">
    <li class="data-list__item">
        <span class="data-list__label">Selling Branch:</span>
        <span class="data-list__value">Dallas South</span>
    </li>
    <li class="data-list__item">
        <span class="data-list__label">Vehicle Location:</span>
        <div class="data-list__value">
            <span>  Dallas, TX  </span>
        </div>
    </li>
    <li class="data-list__item">
        <span class="data-list__label">Engine:</span>
        <span class="data-list__value"> 2.5L I-4 DOHC, VVT, 203HP </span>
    </li>
    <li class="data-list__item">
        <span class="data-list__label">Transmission:</span>
        <span class="data-list__value">Automatic Transmission</span>
    </li>
    <li class="data-list__item">
        <span class="data-list__label">Fuel Type:</span>
        <span class="data-list__value">
            Gasoline
        </span>
    </li>
</ul>
</body></html>"""


class FakeRunner:
    """Process runner returning scripted outputs and recording commands."""

    def __init__(self, outputs: Optional[List[Optional[ProcessOutput]]] = None):
        self.outputs = list(outputs or [])
        self.calls = []

    def run(self, args, cwd, timeout):
        self.calls.append({"args": list(args), "cwd": cwd, "timeout": timeout})
        if not self.outputs:
            return ProcessOutput(1, "")
        return self.outputs.pop(0)


class ScriptedDispatcher:
    """Dispatcher returning queued bodies and recording requests."""

    def __init__(self, bodies: Optional[List[str]] = None):
        self.bodies = list(bodies or [])
        self.calls = []

    def send(self, url, headers, cookie_jar_path, method=None, data=None, extra_cookie=None):
        self.calls.append({
            "url": url,
            "headers": dict(headers),
            "cookie_jar_path": cookie_jar_path,
            "extra_cookie": extra_cookie,
        })
        body = self.bodies.pop(0) if self.bodies else ""
        return RawResponse(body=body, status_code=200 if body else None)


def minter_output(payload, returncode: int = 0, noise: str = "") -> ProcessOutput:
    """Build a minter ProcessOutput whose last line is the JSON payload."""
    stdout = noise + json.dumps(payload) + "\n"
    return ProcessOutput(returncode, stdout)


@pytest.fixture
def cookie_dir(tmp_path):
    """Temporary directory for cookie jars."""
    path = tmp_path / "cookies"
    path.mkdir()
    return path


@pytest.fixture
def sink():
    """In-memory outcome sink."""
    return MemoryOutcomeSink()


@pytest.fixture
def make_orchestrator(cookie_dir, sink, tmp_path):
    """Factory building an orchestrator around fake collaborators."""

    def _make(dispatcher, runner):
        minter = ExternalCookieMinter(
            script_dir=tmp_path / "minter",
            interpreter="node",
            timeout=5,
            runner=runner,
            sink=sink,
        )
        return ListingOrchestrator(
            dispatcher=dispatcher,
            minter=minter,
            cookie_dir=cookie_dir,
            sink=sink,
        )

    return _make
