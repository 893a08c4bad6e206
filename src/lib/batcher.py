"""
Chemistry rendering-request batcher

Coalesces structure-rendering requests issued within a short window into a
single call to the rendering service, deduplicates identical contents, and
caches successful results by content.

Lifecycle of a request:
1. Cached content returns immediately (no timer, no transport call)
2. Content already in flight joins that batch's result
3. Otherwise the caller's future joins the open window; the first request
   of a window arms the flush timer
4. At flush the whole pending map is swept, one batch call is made with the
   distinct contents, and the results fan out to every waiting future

Usage:
    batcher = ChemistryBatcher(HttpTransport(endpoint, client))
    url = await batcher.request("H-C(-[2]H)(-[6]H)-H")

    # Or fill every ChemistryNode of a rendered document
    await chemistry_hydrate(document, batcher)
"""

import asyncio
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Protocol, Set, Tuple

import httpx

from ..models.tree import ChemistryNode, TreeNode
from .log import LOG


class ChemistryRenderError(Exception):
    """Raised when the service could not render one structure"""
    pass


class ChemistryTransport(Protocol):
    """Anything that can render a batch of structures"""

    async def batch_render(self, contents: List[str]) -> Dict[str, Dict[str, Any]]:
        """
        Render several structures in one call

        Returns:
            Content → {"url": ...} or {"error": ...}
        """
        ...


class HttpTransport:
    """
    Batched structure-rendering service over HTTP

    POSTs {"contents": [...]} and expects {"results": {content: {...}}}.
    Any non-2xx status fails the whole batch.
    """

    def __init__(self, endpoint: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 30.0) -> None:
        self.endpoint = endpoint
        self.client = client
        self.timeout = timeout

    async def batch_render(self, contents: List[str]) -> Dict[str, Dict[str, Any]]:
        if self.client is not None:
            return await self.batch_post(self.client, contents)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self.batch_post(client, contents)

    async def batch_post(self, client: httpx.AsyncClient, contents: List[str]) -> Dict[str, Dict[str, Any]]:
        response = await client.post(self.endpoint, json={"contents": contents})
        response.raise_for_status()
        results = response.json().get("results") or {}
        return results


class ChemistryBatcher:
    """
    Request-coalescing client for the structure-rendering service

    Attributes:
        transport: Batch renderer (HttpTransport, QuickLatexTransport, ...)
        window: Coalescing window in seconds
        cache: Content → url of every successful render
        pending: Content → futures waiting in the open window
        inflight: Content → shared result of a batch already sent
        timer: Armed flush timer of the open window, if any
        calls: Number of batch calls issued
    """

    def __init__(
        self,
        transport: Optional[ChemistryTransport] = None,
        window_ms: Optional[int] = None,
        cache_size: Optional[int] = None,
    ) -> None:
        """
        Initialize batcher

        Args:
            transport: Batch renderer (default: HttpTransport on the
                       configured endpoint)
            window_ms: Coalescing window (default: configured value)
            cache_size: Maximum cached urls, least recently used evicted
                        first (default: configured value, None = unbounded)
        """
        from ..config import appsettings

        self.transport: ChemistryTransport = transport or HttpTransport(appsettings.chemistry_endpoint)
        self.window: float = (window_ms if window_ms is not None else appsettings.batch_window_ms) / 1000
        self.cache_size: Optional[int] = cache_size if cache_size is not None else appsettings.chemistry_cache_size
        self.cache: "OrderedDict[str, str]" = OrderedDict()
        self.pending: Dict[str, List[asyncio.Future]] = {}
        self.inflight: Dict[str, asyncio.Future] = {}
        self.timer: Optional[asyncio.TimerHandle] = None
        self.tasks: Set[asyncio.Future] = set()
        self.calls: int = 0

    def cache_get(self, content: str) -> Optional[str]:
        url = self.cache.get(content)
        if url is not None and self.cache_size is not None:
            self.cache.move_to_end(content)
        return url

    def cache_put(self, content: str, url: str) -> None:
        self.cache[content] = url
        if self.cache_size is not None:
            self.cache.move_to_end(content)
            while len(self.cache) > self.cache_size:
                self.cache.popitem(last=False)

    async def request(self, content: str) -> str:
        """
        Request the image url of one structure

        Args:
            content: Structure formula (the body of \\chemfig{...})

        Returns:
            Image url

        Raises:
            ChemistryRenderError: The service could not render ``content``
            httpx.HTTPError: The batch call failed as a whole
        """
        url = self.cache_get(content)
        if url is not None:
            return url

        shared = self.inflight.get(content)
        if shared is not None:
            return await asyncio.shield(shared)

        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self.pending.setdefault(content, []).append(future)

        if self.timer is None:
            self.timer = loop.call_later(self.window, self.flush)

        return await future

    def flush(self) -> None:
        """Sweep the open window and send it as one batch"""
        self.timer = None
        batch, self.pending = self.pending, {}
        if not batch:
            return

        loop = asyncio.get_running_loop()
        for content in batch:
            shared = loop.create_future()
            # Nobody may await a shared result; keep its exception retrieved
            shared.add_done_callback(lambda f: f.cancelled() or f.exception())
            self.inflight[content] = shared

        task = asyncio.ensure_future(self.batch_send(batch))
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)

    async def batch_send(self, batch: Dict[str, List[asyncio.Future]]) -> None:
        """Issue the batch call and fan results out to every waiting future"""
        contents = list(batch)
        self.calls += 1
        LOG(f"Rendering batch of {len(contents)} structure(s)", level=2)

        try:
            results = await self.transport.batch_render(contents)
        except Exception as e:
            LOG(f"Structure batch failed: {e}", level=1)
            for content, futures in batch.items():
                self.outcome_deliver(content, futures, error=e)
            return

        try:
            if not isinstance(results, dict):
                raise ChemistryRenderError(f"Malformed batch response: {type(results).__name__}")
            for content, futures in batch.items():
                url, error = self.result_parse(results.get(content))
                if url:
                    self.cache_put(content, url)
                    self.outcome_deliver(content, futures, url=url)
                else:
                    self.outcome_deliver(content, futures, error=error)
        except Exception as e:
            LOG(f"Structure batch fan-out failed: {e}", level=1)
            for content, futures in batch.items():
                self.outcome_deliver(content, futures, error=e)

    @staticmethod
    def result_parse(result: Any) -> Tuple[Optional[str], Optional[ChemistryRenderError]]:
        """Split one per-key result into a url or a render error"""
        if not isinstance(result, dict):
            if result is not None:
                return None, ChemistryRenderError("Malformed rendering result")
            return None, ChemistryRenderError("Rendering failed")
        url = result.get("url")
        if isinstance(url, str) and url:
            return url, None
        return None, ChemistryRenderError(str(result.get("error") or "Rendering failed"))

    def outcome_deliver(
        self,
        content: str,
        futures: List[asyncio.Future],
        url: Optional[str] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        """Resolve every live future of ``content`` with its url or error"""
        shared = self.inflight.pop(content, None)
        if shared is not None:
            futures = futures + [shared]

        for future in futures:
            if future.done():
                continue
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(url)


async def chemistry_hydrate(tree: TreeNode, batcher: ChemistryBatcher) -> int:
    """
    Fill in every unresolved ChemistryNode of a tree

    All structures are requested concurrently, so they share batches.
    Detached nodes are left untouched.

    Args:
        tree: Rendered document (or any subtree)
        batcher: Batcher used for the requests

    Returns:
        Number of nodes that received an image url
    """
    nodes = [
        node for node in tree.walk()
        if isinstance(node, ChemistryNode) and node.url is None and node.error is None
    ]
    if not nodes:
        return 0

    async def node_hydrate(node: ChemistryNode) -> bool:
        try:
            url = await batcher.request(node.content)
        except Exception as e:
            if node.alive:
                node.error = str(e) or type(e).__name__
            return False
        if not node.alive:
            return False
        node.url = url
        return True

    outcomes = await asyncio.gather(*(node_hydrate(node) for node in nodes))
    LOG(f"Hydrated {sum(outcomes)}/{len(nodes)} structure(s)", level=2)
    return sum(outcomes)
