import asyncio
import base64
import binascii
from io import BytesIO
from pathlib import Path

import aiofiles
import httpx
from PIL import Image, UnidentifiedImageError

from service.core.exceptions import ImageProcessingError, NetworkError
from service.core.ml.utils.types import ImageRef


class ImageLoader:
    """
    Reads an image locator into a small RGB thumbnail for pixel statistics.

    Locators are https/http URLs, base64 data URIs or local file paths. Only
    the thumbnail is kept, so colour statistics stay cheap regardless of the
    source resolution. Downloads larger than max_bytes are refused.

        async with ImageLoader(thumbnail_size=64) as loader:
            thumbnail = await loader.load_image("https://images.example.com/a.png")
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        max_bytes: int = 20 * 1024 * 1024,
        thumbnail_size: int = 64,
    ):
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.thumbnail_size = thumbnail_size
        self._http_client = http_client
        self._own_client = http_client is None

    async def __aenter__(self):
        if self._own_client:
            self._http_client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout), follow_redirects=True)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._own_client and self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def load_image(self, ref: ImageRef) -> Image.Image:
        """
        Load a locator as an RGB thumbnail no larger than thumbnail_size on either side.

        Raises:
            NetworkError: URL could not be fetched
            ImageProcessingError: Bytes are missing, too large or not a decodable image
        """
        locator = str(ref)
        if locator.startswith("data:"):
            raw = self._decode_data_uri(locator)
        elif locator.startswith(("http://", "https://")):
            raw = await self._download(locator)
        else:
            raw = await self._read_file(locator)

        return await asyncio.to_thread(self._to_thumbnail, raw, locator)

    def _decode_data_uri(self, locator: str) -> bytes:
        header, _, payload = locator.partition(",")
        if not header.endswith(";base64") or not payload:
            raise ImageProcessingError("Data URI must carry base64 image data")
        try:
            raw = base64.b64decode(payload, validate=True)
        except binascii.Error as e:
            raise ImageProcessingError(f"Data URI holds invalid base64: {e}") from e
        if len(raw) > self.max_bytes:
            raise ImageProcessingError(f"Data URI image exceeds {self.max_bytes} bytes")
        return raw

    async def _download(self, url: str) -> bytes:
        if self._http_client is None:
            raise ImageProcessingError("HTTP client not initialized. Use async context manager.")

        try:
            async with self._http_client.stream("GET", url) as response:
                if response.status_code >= 400:
                    raise NetworkError(f"Image fetch failed for {url}: HTTP {response.status_code}")
                buffer = bytearray()
                async for chunk in response.aiter_bytes():
                    buffer.extend(chunk)
                    if len(buffer) > self.max_bytes:
                        raise ImageProcessingError(f"Image at {url} exceeds {self.max_bytes} bytes")
        except httpx.RequestError as e:
            raise NetworkError(f"Image fetch failed for {url}: {e}") from e

        return bytes(buffer)

    async def _read_file(self, path: str) -> bytes:
        file_path = Path(path)
        if not file_path.is_file():
            raise ImageProcessingError(f"Image file not found: {path}")
        if file_path.stat().st_size > self.max_bytes:
            raise ImageProcessingError(f"Image file {path} exceeds {self.max_bytes} bytes")

        async with aiofiles.open(file_path, "rb") as f:
            return await f.read()

    def _to_thumbnail(self, raw: bytes, locator: str) -> Image.Image:
        # Runs in a worker thread; draft() lets JPEG decode at reduced scale
        try:
            with Image.open(BytesIO(raw)) as image:
                image.draft("RGB", (self.thumbnail_size, self.thumbnail_size))
                thumbnail = image.convert("RGB")
        except (UnidentifiedImageError, OSError) as e:
            raise ImageProcessingError(f"Cannot decode image from {locator[:80]}: {e}") from e

        thumbnail.thumbnail((self.thumbnail_size, self.thumbnail_size))
        return thumbnail
