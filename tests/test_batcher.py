"""
Chemistry batcher tests

Tests request coalescing, deduplication, caching, error fan-out and tree
hydration. Each test drives its own event loop with asyncio.run and a fake
transport that records every batch call.
"""

import asyncio
import json

import httpx
import pytest

from chemdown.lib.batcher import (
    ChemistryBatcher,
    ChemistryRenderError,
    HttpTransport,
    chemistry_hydrate,
)
from chemdown.lib.renderer import RenderOptions, render
from chemdown.models.tree import ChemistryNode


class FakeTransport:
    """Renders every content to a predictable url, or to an error"""

    def __init__(self, errors=None, failure=None):
        self.calls = []
        self.errors = errors or {}
        self.failure = failure

    async def batch_render(self, contents):
        self.calls.append(list(contents))
        if self.failure is not None:
            raise self.failure
        results = {}
        for content in contents:
            if content in self.errors:
                results[content] = {"error": self.errors[content]}
            else:
                results[content] = {"url": f"https://img.test/{content}.png"}
        return results


class SlowTransport(FakeTransport):
    """Holds every batch until ``release`` is set"""

    def __init__(self):
        super().__init__()
        self.release = None

    async def batch_render(self, contents):
        await self.release.wait()
        return await super().batch_render(contents)


class TestCoalescing:
    """Test request coalescing and deduplication"""

    def test_identical_requests_share_one_call(self):
        """5 concurrent requests for H2O → 1 call, 5 identical urls"""
        transport = FakeTransport()

        async def scenario():
            batcher = ChemistryBatcher(transport, window_ms=10)
            return await asyncio.gather(*(batcher.request("H2O") for _ in range(5)))

        urls = asyncio.run(scenario())

        assert transport.calls == [["H2O"]]
        assert urls == ["https://img.test/H2O.png"] * 5

    def test_distinct_keys_share_one_batch(self):
        transport = FakeTransport()

        async def scenario():
            batcher = ChemistryBatcher(transport, window_ms=10)
            return await asyncio.gather(batcher.request("A"), batcher.request("B"), batcher.request("A"))

        urls = asyncio.run(scenario())

        assert len(transport.calls) == 1
        assert sorted(transport.calls[0]) == ["A", "B"]
        assert urls == ["https://img.test/A.png", "https://img.test/B.png", "https://img.test/A.png"]

    def test_requests_after_flush_open_new_window(self):
        transport = FakeTransport()

        async def scenario():
            batcher = ChemistryBatcher(transport, window_ms=5)
            await batcher.request("A")
            await batcher.request("B")
            return batcher

        batcher = asyncio.run(scenario())
        assert transport.calls == [["A"], ["B"]]
        assert batcher.calls == 2

    def test_request_joins_batch_in_flight(self):
        transport = SlowTransport()

        async def scenario():
            transport.release = asyncio.Event()
            batcher = ChemistryBatcher(transport, window_ms=5)
            first = asyncio.ensure_future(batcher.request("A"))
            await asyncio.sleep(0.05)
            assert "A" in batcher.inflight

            second = asyncio.ensure_future(batcher.request("A"))
            await asyncio.sleep(0)
            transport.release.set()
            return await asyncio.gather(first, second)

        urls = asyncio.run(scenario())
        assert transport.calls == [["A"]]
        assert urls == ["https://img.test/A.png"] * 2


class TestCache:
    """Test result caching"""

    def test_warm_cache_skips_timer_and_transport(self):
        transport = FakeTransport()

        async def scenario():
            batcher = ChemistryBatcher(transport, window_ms=5)
            first = await batcher.request("H2O")
            assert batcher.timer is None

            second = await batcher.request("H2O")
            assert batcher.timer is None
            return first, second

        first, second = asyncio.run(scenario())
        assert first == second
        assert len(transport.calls) == 1

    def test_lru_eviction(self):
        transport = FakeTransport()

        async def scenario():
            batcher = ChemistryBatcher(transport, window_ms=1, cache_size=2)
            await batcher.request("A")
            await batcher.request("B")
            await batcher.request("A")
            await batcher.request("C")
            return batcher

        batcher = asyncio.run(scenario())
        assert list(batcher.cache) == ["A", "C"]

    def test_errors_are_not_cached(self):
        transport = FakeTransport(errors={"bad": "nope"})

        async def scenario():
            batcher = ChemistryBatcher(transport, window_ms=1)
            for _ in range(2):
                with pytest.raises(ChemistryRenderError):
                    await batcher.request("bad")
            return batcher

        batcher = asyncio.run(scenario())
        assert batcher.cache == {}
        assert len(transport.calls) == 2


class TestFailures:
    """Test error fan-out"""

    def test_per_key_error(self):
        transport = FakeTransport(errors={"bad": "Invalid structure"})

        async def scenario():
            batcher = ChemistryBatcher(transport, window_ms=5)
            return await asyncio.gather(
                batcher.request("good"), batcher.request("bad"), return_exceptions=True
            )

        good, bad = asyncio.run(scenario())
        assert good == "https://img.test/good.png"
        assert isinstance(bad, ChemistryRenderError)
        assert str(bad) == "Invalid structure"

    def test_missing_result_is_an_error(self):
        class EmptyTransport(FakeTransport):
            async def batch_render(self, contents):
                self.calls.append(list(contents))
                return {}

        async def scenario():
            batcher = ChemistryBatcher(EmptyTransport(), window_ms=1)
            with pytest.raises(ChemistryRenderError, match="Rendering failed"):
                await batcher.request("X")

        asyncio.run(scenario())

    def test_malformed_result_is_a_per_key_error(self):
        class BareUrlTransport(FakeTransport):
            async def batch_render(self, contents):
                self.calls.append(list(contents))
                return {content: "https://img.test/x.png" for content in contents}

        async def scenario():
            batcher = ChemistryBatcher(BareUrlTransport(), window_ms=1)
            results = await asyncio.wait_for(
                asyncio.gather(batcher.request("H2O"), batcher.request("H2O"), return_exceptions=True),
                1.0,
            )
            return batcher, results

        batcher, results = asyncio.run(scenario())
        assert all(isinstance(result, ChemistryRenderError) for result in results)
        assert batcher.cache == {}
        assert batcher.inflight == {}

    def test_malformed_batch_response_rejects_every_caller(self):
        class ListTransport(FakeTransport):
            async def batch_render(self, contents):
                return list(contents)

        async def scenario():
            batcher = ChemistryBatcher(ListTransport(), window_ms=1)
            return await asyncio.wait_for(
                asyncio.gather(batcher.request("A"), batcher.request("B"), return_exceptions=True),
                1.0,
            )

        results = asyncio.run(scenario())
        assert all(isinstance(result, ChemistryRenderError) for result in results)

    def test_error_without_url_is_reported(self):
        transport = FakeTransport(errors={"X": None})

        async def scenario():
            batcher = ChemistryBatcher(transport, window_ms=1)
            with pytest.raises(ChemistryRenderError, match="Rendering failed"):
                await batcher.request("X")

        asyncio.run(scenario())

    def test_transport_failure_rejects_every_caller(self):
        failure = RuntimeError("service down")
        transport = FakeTransport(failure=failure)

        async def scenario():
            batcher = ChemistryBatcher(transport, window_ms=5)
            results = await asyncio.gather(
                batcher.request("A"), batcher.request("A"), batcher.request("B"),
                return_exceptions=True,
            )
            return batcher, results

        batcher, results = asyncio.run(scenario())
        assert all(result is failure for result in results)
        assert batcher.cache == {}
        assert batcher.inflight == {}

    def test_cancelled_caller_does_not_affect_others(self):
        transport = FakeTransport()

        async def scenario():
            batcher = ChemistryBatcher(transport, window_ms=10)
            first = asyncio.ensure_future(batcher.request("X"))
            second = asyncio.ensure_future(batcher.request("X"))
            await asyncio.sleep(0)
            first.cancel()
            url = await second
            return first, url

        first, url = asyncio.run(scenario())
        assert first.cancelled()
        assert url == "https://img.test/X.png"
        assert transport.calls == [["X"]]


class TestHydration:
    """Test filling chemistry nodes of a rendered tree"""

    def test_hydrate_document(self):
        transport = FakeTransport()
        document = render(
            r"$\chemfig{H-O-H}$ and $\chemfig{H-O-H}$ and $\chemfig{C=O}$",
            RenderOptions(math_extract=True),
        )

        async def scenario():
            return await chemistry_hydrate(document, ChemistryBatcher(transport, window_ms=5))

        resolved = asyncio.run(scenario())

        assert resolved == 3
        assert len(transport.calls) == 1
        assert sorted(transport.calls[0]) == ["C=O", "H-O-H"]
        html = document.html_render()
        assert html.count('class="chemistry-image"') == 3
        assert 'alt="Chemical structure: H-O-H"' in html

    def test_detached_node_is_not_updated(self):
        transport = FakeTransport()
        document = render(r"$$\chemfig{A-B}$$", RenderOptions(math_extract=True))
        node = document.children[0]
        node.detach()

        resolved = asyncio.run(chemistry_hydrate(document, ChemistryBatcher(transport, window_ms=1)))

        assert resolved == 0
        assert node.url is None

    def test_error_is_shown(self):
        transport = FakeTransport(errors={"??": "Invalid structure"})
        document = render(r"$$\chemfig{??}$$", RenderOptions(math_extract=True))

        asyncio.run(chemistry_hydrate(document, ChemistryBatcher(transport, window_ms=1)))

        node = document.children[0]
        assert isinstance(node, ChemistryNode)
        assert node.error == "Invalid structure"
        assert "chemistry-error" in document.html_render()

    def test_nothing_to_hydrate(self):
        transport = FakeTransport()
        document = render("plain text")
        assert asyncio.run(chemistry_hydrate(document, ChemistryBatcher(transport))) == 0
        assert transport.calls == []


class TestHttpTransport:
    """Test the batched HTTP transport against a mock service"""

    def test_batch_post(self):
        seen = []

        def handler(request):
            body = json.loads(request.content)
            seen.append(body)
            results = {c: {"url": f"https://svc.test/{c}.png"} for c in body["contents"]}
            return httpx.Response(200, json={"results": results})

        async def scenario():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                return await HttpTransport("https://svc.test/api", client).batch_render(["A", "B"])

        results = asyncio.run(scenario())
        assert seen == [{"contents": ["A", "B"]}]
        assert results["B"] == {"url": "https://svc.test/B.png"}

    def test_non_2xx_fails_the_batch(self):
        def handler(request):
            return httpx.Response(500, json={"error": "boom"})

        async def scenario():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                batcher = ChemistryBatcher(HttpTransport("https://svc.test/api", client), window_ms=1)
                return await asyncio.gather(
                    batcher.request("A"), batcher.request("B"), return_exceptions=True
                )

        results = asyncio.run(scenario())
        assert all(isinstance(result, httpx.HTTPStatusError) for result in results)
