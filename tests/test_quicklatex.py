"""
QuickLaTeX transport tests

Tests the form request, response parsing and retry behavior against a
mock HTTP transport (no network access).
"""

import asyncio
from urllib.parse import parse_qs

import httpx
import pytest

from chemdown.lib.quicklatex import QuickLatexTransport


OK_BODY = "0\nhttps://quicklatex.com/cache3/ab/ql_abc.png 0 0 120 80\n"


def transport_run(handler, contents, **kwargs):
    """Render ``contents`` through a QuickLatexTransport backed by ``handler``"""
    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            transport = QuickLatexTransport(client=client, backoff=0, **kwargs)
            return await transport.batch_render(contents)

    return asyncio.run(scenario())


class TestRequest:
    """Test the form sent to QuickLaTeX"""

    def test_form_fields(self):
        forms = []

        def handler(request):
            forms.append(parse_qs(request.content.decode()))
            return httpx.Response(200, text=OK_BODY)

        transport_run(handler, ["H-O-H"])

        form = forms[0]
        assert form["formula"] == ["\\chemfig{H-O-H}"]
        assert form["preamble"] == ["\\usepackage{chemfig}"]
        assert form["fsize"] == ["40px"]
        assert form["mode"] == ["1"]


class TestResponses:
    """Test response parsing"""

    def test_image_url(self):
        results = transport_run(lambda request: httpx.Response(200, text=OK_BODY), ["A"])
        assert results == {"A": {"url": "https://quicklatex.com/cache3/ab/ql_abc.png"}}

    def test_error_status_line(self):
        results = transport_run(lambda request: httpx.Response(200, text="-1\nbad formula"), ["A"])
        assert "error" in results["A"]

    def test_missing_url(self):
        results = transport_run(lambda request: httpx.Response(200, text="0\nnothing here"), ["A"])
        assert "error" in results["A"]

    def test_batch_keeps_keys(self):
        results = transport_run(lambda request: httpx.Response(200, text=OK_BODY), ["A", "B"])
        assert set(results) == {"A", "B"}


class TestRetries:
    """Test retry on server and transport errors"""

    def test_retry_on_503(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) < 3:
                return httpx.Response(503)
            return httpx.Response(200, text=OK_BODY)

        results = transport_run(handler, ["A"])
        assert len(attempts) == 3
        assert "url" in results["A"]

    def test_gives_up_after_retries(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(500)

        results = transport_run(handler, ["A"], retries=2)
        assert len(attempts) == 3
        assert "error" in results["A"]

    def test_no_retry_on_client_error(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(400)

        results = transport_run(handler, ["A"])
        assert len(attempts) == 1
        assert "error" in results["A"]

    def test_retry_on_transport_error(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ConnectError("unreachable", request=request)

        results = transport_run(handler, ["A"], retries=1)
        assert len(attempts) == 2
        assert "error" in results["A"]
