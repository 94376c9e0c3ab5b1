"""Media pipeline seam.

Transcoding and re-hosting services are external; the default pipeline
passes URLs through unchanged and only downloads bytes when an upload to the
remote platform needs them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx
from loguru import logger


@dataclass
class AudioClip:
    filename: str
    data: bytes


class MediaPipeline(ABC):
    @abstractmethod
    async def rehost_image(self, url: str) -> str:
        """Return a URL the local platform can embed."""

    @abstractmethod
    async def rehost_video(self, url: str) -> str: ...

    @abstractmethod
    async def transcode_audio(self, url: str, media_id: str) -> AudioClip | None:
        """Return a playable clip, or None to post the source URL instead."""

    @abstractmethod
    async def fetch(self, url: str) -> bytes:
        """Download a local attachment for upload to the remote platform."""

    async def aclose(self) -> None:
        return None


class HttpMediaPipeline(MediaPipeline):
    """Pass-through pipeline backed by an httpx client."""

    def __init__(
        self,
        *,
        read_timeout: float = 60.0,
        write_timeout: float = 10.0,
        connect_timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                read_timeout,
                write=write_timeout,
                connect=connect_timeout,
                pool=connect_timeout,
            ),
            follow_redirects=True,
        )

    async def rehost_image(self, url: str) -> str:
        return url

    async def rehost_video(self, url: str) -> str:
        return url

    async def transcode_audio(self, url: str, media_id: str) -> AudioClip | None:
        return None

    async def fetch(self, url: str) -> bytes:
        response = await self._client.get(url)
        response.raise_for_status()
        logger.debug(f"MEDIA: fetched {len(response.content)} bytes from {url}")
        return response.content

    async def aclose(self) -> None:
        await self._client.aclose()
