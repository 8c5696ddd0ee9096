"""
Shared fixtures for the prompt studio tests
"""
import asyncio
import io

import pytest
from starlette.datastructures import Headers, UploadFile

from image_ingestion import EncodedImage


class BrokenFile:
    """Upload stand-in whose read always fails."""

    def __init__(self, filename="broken.png", content_type="image/png"):
        self.filename = filename
        self.content_type = content_type

    async def read(self):
        raise OSError("disk went away")


class GatedDescriber:
    """Describer that blocks every call until released and tracks concurrency."""

    def __init__(self, result="a generated prompt"):
        self.result = result
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.release = asyncio.Event()

    async def __call__(self, content, mime_type):
        self.calls.append((content, mime_type))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await self.release.wait()
            return self.result
        finally:
            self.in_flight -= 1


@pytest.fixture
def make_upload():
    def _make(filename, content_type, data=b"\x89PNG fake bytes"):
        return UploadFile(
            file=io.BytesIO(data),
            filename=filename,
            headers=Headers({"content-type": content_type}),
        )

    return _make


@pytest.fixture
def sample_images():
    return [
        EncodedImage(id="img-1", filename="cat.png", mime_type="image/png", content="Y2F0"),
        EncodedImage(id="img-2", filename="dog.jpg", mime_type="image/jpeg", content="ZG9n"),
        EncodedImage(id="img-3", filename="owl.webp", mime_type="image/webp", content="b3ds"),
    ]


@pytest.fixture
def broken_file():
    return BrokenFile()


@pytest.fixture
def gated_describer():
    return GatedDescriber()
