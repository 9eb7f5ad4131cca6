"""
Tests for the external cookie minter.
"""

import os
import sys
import textwrap
import time

import pytest

from lotparser.base import Cookie, ErrorKind
from lotparser.crawlers.minter import (
    ExternalCookieMinter,
    ProcessOutput,
    SubprocessRunner,
    last_nonempty_line,
    unwrap_data_fragment,
)
from lotparser.outcome_log import MemoryOutcomeSink
from tests.conftest import COPART_LOT_JSON, FakeRunner, minter_output


def make_minter(tmp_path, runner, sink=None):
    return ExternalCookieMinter(
        script_dir=tmp_path,
        interpreter="/usr/local/bin/node",
        timeout=12,
        runner=runner,
        sink=sink,
    )


class TestMinterInvocation:
    """Test how the minter process is launched."""

    def test_iaai_arguments(self, tmp_path):
        """Test that IAAI passes the listing URL."""
        runner = FakeRunner([minter_output({"cookies": [{"name": "a", "value": "1"}]})])
        make_minter(tmp_path, runner).mint_iaai("cookie.js", "https://www.iaai.com/VehicleDetail/1")

        call = runner.calls[0]
        assert call["args"] == [
            "/usr/local/bin/node",
            str(tmp_path / "cookie.js"),
            "https://www.iaai.com/VehicleDetail/1",
        ]
        assert call["cwd"] == tmp_path
        assert call["timeout"] == 12

    def test_copart_arguments(self, tmp_path):
        """Test that Copart passes the lot id then the current cookie string."""
        runner = FakeRunner([minter_output({"cookies": []})])
        make_minter(tmp_path, runner).mint_copart("cookieCopart.js", "41234567", "sessionid=abcd")

        assert runner.calls[0]["args"][1:] == [
            str(tmp_path / "cookieCopart.js"),
            "41234567",
            "sessionid=abcd",
        ]


class TestMinterOutput:
    """Test parsing of minter output."""

    def test_cookies_object(self, tmp_path):
        """Test the documented {"cookies": [...]} shape."""
        runner = FakeRunner([minter_output({"cookies": [
            {"name": "reese84", "value": "3:abc"},
            {"name": "ASP.NET_SessionId", "value": "xyz"},
        ]})])
        result = make_minter(tmp_path, runner).mint_iaai("cookie.js", "u")

        assert result.ok
        assert result.cookies == [Cookie("reese84", "3:abc"), Cookie("ASP.NET_SessionId", "xyz")]
        assert result.cookie_header == "reese84=3:abc; ASP.NET_SessionId=xyz"
        assert result.data == ""

    def test_bare_cookie_array(self, tmp_path):
        """Test that a bare JSON array of cookies is accepted."""
        runner = FakeRunner([minter_output([{"name": "a", "value": "1"}])])
        result = make_minter(tmp_path, runner).mint_iaai("cookie.js", "u")
        assert result.cookie_header == "a=1"

    def test_last_line_is_parsed(self, tmp_path):
        """Test that warnings printed before the payload are ignored."""
        noise = "(node:1234) DeprecationWarning: something old\nnot json either\n"
        runner = FakeRunner([minter_output({"cookies": [{"name": "a", "value": "1"}]}, noise=noise)])
        result = make_minter(tmp_path, runner).mint_iaai("cookie.js", "u")
        assert result.cookie_header == "a=1"

    def test_nonzero_exit_is_failure(self, tmp_path):
        """Test that a failing process yields ExternalMinterFailed."""
        runner = FakeRunner([minter_output({"cookies": [{"name": "a", "value": "1"}]}, returncode=1)])
        result = make_minter(tmp_path, runner).mint_iaai("cookie.js", "u")
        assert result.error == ErrorKind.EXTERNAL_MINTER_FAILED
        assert result.cookies == []

    def test_empty_output_is_failure(self, tmp_path):
        """Test that no output yields ExternalMinterFailed."""
        runner = FakeRunner([ProcessOutput(0, "\n  \n")])
        result = make_minter(tmp_path, runner).mint_iaai("cookie.js", "u")
        assert result.error == ErrorKind.EXTERNAL_MINTER_FAILED

    def test_runner_failure_is_failure(self, tmp_path):
        """Test that a timed-out or unstartable process yields ExternalMinterFailed."""
        runner = FakeRunner([None])
        result = make_minter(tmp_path, runner).mint_iaai("cookie.js", "u")
        assert result.error == ErrorKind.EXTERNAL_MINTER_FAILED

    def test_invalid_json_is_invalid_output(self, tmp_path):
        """Test that undecodable output yields ExternalMinterInvalidOutput."""
        sink = MemoryOutcomeSink()
        runner = FakeRunner([ProcessOutput(0, "Error: net::ERR_TIMED_OUT\n")])
        result = make_minter(tmp_path, runner, sink).mint_copart("cookieCopart.js", "1", "")

        assert result.error == ErrorKind.EXTERNAL_MINTER_INVALID_OUTPUT
        assert sink.names() == ["nodejs_copart_debug", "nodejs_copart_error"]
        assert sink.last("nodejs_copart_error")["raw_output"] == "Error: net::ERR_TIMED_OUT"

    def test_scalar_json_is_invalid_output(self, tmp_path):
        """Test that JSON which is not an object is rejected."""
        runner = FakeRunner([ProcessOutput(0, '"just a string"\n')])
        result = make_minter(tmp_path, runner).mint_iaai("cookie.js", "u")
        assert result.error == ErrorKind.EXTERNAL_MINTER_INVALID_OUTPUT

    def test_copart_data_is_unwrapped(self, tmp_path):
        """Test that Copart data wrapped in markup is recovered."""
        wrapped = "<html><body><pre>" + COPART_LOT_JSON + "</pre></body></html>"
        runner = FakeRunner([minter_output({"cookies": [], "data": wrapped})])
        result = make_minter(tmp_path, runner).mint_copart("cookieCopart.js", "1", "")

        assert result.ok
        assert result.data == COPART_LOT_JSON

    def test_copart_data_absent_is_empty_object(self, tmp_path):
        """Test that missing data becomes an empty object."""
        runner = FakeRunner([minter_output({"cookies": [{"name": "a", "value": "1"}]})])
        result = make_minter(tmp_path, runner).mint_copart("cookieCopart.js", "1", "")
        assert result.data == "{}"

    def test_iaai_ignores_data(self, tmp_path):
        """Test that the IAAI path never reads data."""
        runner = FakeRunner([minter_output({"cookies": [], "data": "<p>{\"a\":1}</p>"})])
        result = make_minter(tmp_path, runner).mint_iaai("cookie.js", "u")
        assert result.data == ""

    def test_debug_record_is_emitted(self, tmp_path):
        """Test that every invocation is logged to the debug sink."""
        sink = MemoryOutcomeSink()
        runner = FakeRunner([minter_output({"cookies": []})])
        make_minter(tmp_path, runner, sink).mint_iaai("cookie.js", "u")

        record = sink.last("nodejs_iaai_debug")
        assert record["return_var"] == 0
        assert record["command"][-1] == "u"


class TestHelpers:
    """Test output helpers."""

    def test_last_nonempty_line(self):
        """Test picking the final payload line."""
        assert last_nonempty_line("a\nb\n\n  \n") == "b"
        assert last_nonempty_line("") == ""

    @pytest.mark.parametrize("data,expected", [
        ('<pre>{"a": 1}</pre>', '{"a": 1}'),
        ('<pre>{"a": {"b": 2}}</pre>', '{"a": {"b": 2}}'),
        ("no json here", "{}"),
        ("", "{}"),
        (None, "{}"),
        ({"already": "parsed"}, "{}"),
    ])
    def test_unwrap_data_fragment(self, data, expected):
        """Test the delimiter-based data unwrapping."""
        assert unwrap_data_fragment(data) == expected


class TestSubprocessRunner:
    """Test the default subprocess runner against the current interpreter."""

    def test_captures_stdout(self, tmp_path):
        """Test a successful run."""
        output = SubprocessRunner().run(
            [sys.executable, "-c", "print('hello')"], tmp_path, timeout=30
        )
        assert output.returncode == 0
        assert output.stdout.strip() == "hello"

    def test_timeout_returns_none(self, tmp_path):
        """Test that a hung process is cut off."""
        output = SubprocessRunner().run(
            [sys.executable, "-c", "import time; time.sleep(10)"], tmp_path, timeout=0.5
        )
        assert output is None

    def test_missing_interpreter_returns_none(self, tmp_path):
        """Test that an unstartable command is reported as failure."""
        output = SubprocessRunner().run(
            [str(tmp_path / "no-such-node"), "script.js"], tmp_path, timeout=5
        )
        assert output is None

    def test_undecodable_output_is_replaced(self, tmp_path):
        """Test that stray non-UTF-8 bytes do not break decoding of the last line."""
        script = tmp_path / "noisy.py"
        script.write_text(
            "import sys\n"
            "sys.stdout.buffer.write(b'warn \\xff\\n[{\"name\": \"sessionid\", \"value\": \"1\"}]\\n')\n"
        )
        minter = ExternalCookieMinter(
            script_dir=tmp_path, interpreter=sys.executable, timeout=30, runner=SubprocessRunner()
        )

        result = minter.mint_iaai("noisy.py", "https://www.iaai.com/VehicleDetail/1~US")

        assert result.ok
        assert result.cookies == [Cookie("sessionid", "1")]

    @pytest.mark.skipif(not hasattr(os, "killpg"), reason="process groups are POSIX only")
    def test_timeout_kills_grandchildren(self, tmp_path):
        """Test that a timed-out minter takes the browser it launched down with it."""
        pid_file = tmp_path / "grandchild.pid"
        script = tmp_path / "spawner.py"
        script.write_text(textwrap.dedent(f"""
            import subprocess, sys, time
            child = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])
            with open({str(pid_file)!r}, "w") as f:
                f.write(str(child.pid))
            time.sleep(30)
        """))

        output = SubprocessRunner().run([sys.executable, str(script)], tmp_path, timeout=1.5)

        assert output is None
        grandchild = int(pid_file.read_text())
        deadline = time.monotonic() + 5
        while _process_alive(grandchild) and time.monotonic() < deadline:
            time.sleep(0.1)
        assert not _process_alive(grandchild)


def _process_alive(pid):
    """True if pid exists and is not a zombie waiting to be reaped."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    try:
        with open(f"/proc/{pid}/status") as f:
            for line in f:
                if line.startswith("State:"):
                    return "Z" not in line.split()[1]
    except OSError:
        return False
    return True
