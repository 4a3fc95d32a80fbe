"""Stand-ins for the browser and HTTP layers used across the test suite."""

from contextlib import asynccontextmanager

import requests


PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SIGNATURE = b"\xff\xd8\xff\xe0"


class FakeResponse:
    def __init__(self, chunks=(), status=200, headers=None, error=None):
        self.chunks = list(chunks)
        self.status_code = status
        self.headers = headers or {"Content-Type": "image/jpeg"}
        self.error = error
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
        return False

    def close(self):
        self.closed = True

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error", response=self)

    def iter_content(self, chunk_size=1):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error


class FakeSession:
    """Maps URLs to canned responses (or exceptions) and records every request."""

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.calls = []

    def get(self, url, headers=None, stream=False, timeout=None):
        self.calls.append({"url": url, "headers": headers, "stream": stream, "timeout": timeout})
        response = self.responses.get(url)
        if response is None:
            raise requests.ConnectionError(f"no route to {url}")
        if isinstance(response, Exception):
            raise response
        return response


class FakePage:
    def __init__(self, texts=None, attributes=None, styles=None, error=None):
        self.texts = texts or {}
        self.attributes = attributes or {}
        self.styles = styles or {}
        self.error = error
        self.waited = []
        self.settled = []

    async def wait_for(self, selector, timeout):
        self.waited.append((selector, timeout))
        return selector in self.texts or any(sel == selector for sel, _ in self.attributes)

    async def settle(self, seconds):
        self.settled.append(seconds)

    async def text(self, selector):
        if self.error is not None:
            raise self.error
        return self.texts.get(selector)

    async def attribute(self, selector, name):
        return self.attributes.get((selector, name))

    async def style(self, selector, prop):
        return self.styles.get((selector, prop))


class FakeRenderer:
    """Hands out one page per session and counts how many sessions were released."""

    def __init__(self, page=None, error=None):
        self.page = page or FakePage()
        self.error = error
        self.opened = []
        self.closed = 0

    @asynccontextmanager
    async def open(self, url, user_agent, viewport, timeout):
        self.opened.append({"url": url, "user_agent": user_agent, "viewport": viewport})
        try:
            if self.error is not None:
                raise self.error
            yield self.page
        finally:
            self.closed += 1


def png_bytes(size):
    return PNG_SIGNATURE + b"\x00" * (size - len(PNG_SIGNATURE))


def jpeg_bytes(size):
    return JPEG_SIGNATURE + b"\x00" * (size - len(JPEG_SIGNATURE))


