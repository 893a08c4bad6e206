"""
QuickLaTeX structure-rendering transport

Renders chemfig formulas directly against the public QuickLaTeX service,
one HTTP call per structure, with retries on server errors and transport
failures. Implements the same batch_render() interface as HttpTransport so
it can back a ChemistryBatcher when no rendering service is deployed.

QuickLaTeX answers with plain text:

    0
    https://quicklatex.com/cache3/ab/ql_abc123.png 0 0 120 80

A first line other than "0" is an error report.
"""

import asyncio
import re
from typing import Any, Dict, List, Optional

import httpx

from .log import LOG


QUICKLATEX_ENDPOINT = "https://quicklatex.com/latex3.f"
IMAGE_URL_PATTERN = re.compile(r'(https://quicklatex\.com/cache3/\S+)')
RETRY_STATUSES = {500, 503}


class QuickLatexTransport:
    """
    Per-structure QuickLaTeX client

    Attributes:
        endpoint: QuickLaTeX form endpoint
        retries: Retries after the first attempt
        backoff: Delay before the first retry in seconds, doubled each time
        timeout: Per-attempt timeout in seconds
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        endpoint: str = QUICKLATEX_ENDPOINT,
        retries: int = 3,
        backoff: float = 1.0,
        timeout: float = 10.0,
    ) -> None:
        self.client = client
        self.endpoint = endpoint
        self.retries = retries
        self.backoff = backoff
        self.timeout = timeout

    def form_build(self, content: str) -> Dict[str, str]:
        """Form fields of one render request"""
        return {
            'formula': f'\\chemfig{{{content}}}',
            'fsize': '40px',
            'fcolor': '000000',
            'mode': '1',
            'out': '1',
            'remhost': 'quicklatex.com',
            'preamble': '\\usepackage{chemfig}',
        }

    async def post_retry(self, client: httpx.AsyncClient, form: Dict[str, str]) -> httpx.Response:
        """
        POST with retries on 500/503 and transport errors

        Returns:
            The last response, whatever its status

        Raises:
            httpx.TransportError: Every attempt failed at transport level
        """
        delay = self.backoff
        for attempt in range(self.retries + 1):
            last = attempt == self.retries
            try:
                response = await client.post(self.endpoint, data=form, timeout=self.timeout)
            except httpx.TransportError as e:
                if last:
                    raise
                LOG(f"QuickLaTeX transport error ({e}), retrying in {delay:.1f}s", level=2)
            else:
                if response.status_code not in RETRY_STATUSES or last:
                    return response
                LOG(f"QuickLaTeX responded {response.status_code}, retrying in {delay:.1f}s", level=2)

            await asyncio.sleep(delay)
            delay *= 2

        raise RuntimeError("unreachable")

    def url_parse(self, text: str) -> str:
        """
        Image url of a QuickLaTeX response body

        Raises:
            ValueError: The body reports an error or holds no image url
        """
        lines = text.split('\n')
        if lines[0].strip() != '0':
            raise ValueError(f"QuickLaTeX error: {text.strip()}")

        match = IMAGE_URL_PATTERN.search(lines[1]) if len(lines) > 1 else None
        if not match:
            raise ValueError("Failed to parse image URL from QuickLaTeX response")
        return match.group(1)

    async def structure_render(self, client: httpx.AsyncClient, content: str) -> Dict[str, Any]:
        """Render one structure into a {"url": ...} or {"error": ...} result"""
        try:
            response = await self.post_retry(client, self.form_build(content))
            response.raise_for_status()
            return {"url": self.url_parse(response.text)}
        except (httpx.HTTPError, ValueError) as e:
            LOG(f"Structure rendering failed for '{content}': {e}", level=1)
            return {"error": "Chemistry rendering service is temporarily unavailable. Please try again later."}

    async def batch_render(self, contents: List[str]) -> Dict[str, Dict[str, Any]]:
        """Render every structure of a batch concurrently"""
        if self.client is not None:
            results = await asyncio.gather(*(self.structure_render(self.client, c) for c in contents))
        else:
            async with httpx.AsyncClient() as client:
                results = await asyncio.gather(*(self.structure_render(client, c) for c in contents))
        return dict(zip(contents, results))
