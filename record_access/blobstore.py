"""
Content-addressed fetch of encrypted record payloads.
"""

from typing import Dict, Optional, Protocol, runtime_checkable

import httpx

from .exceptions import TransportError
from .models import BlobContent, utc_now
from .observability.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class BlobStore(Protocol):
    """Content-addressed store holding encrypted payloads."""

    async def fetch(self, cid: str) -> BlobContent:
        ...


class IpfsGatewayBlobStore:
    """
    Fetches blobs through an IPFS HTTP gateway (GET <gateway>/ipfs/<cid>).

    Returned metadata carries fetchedAt, size and contentType. Those keys
    override record metadata of the same name when the response is built.
    """

    SERVICE = "ipfs"

    def __init__(
        self,
        gateway_url: str = "https://ipfs.io",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the blob store.

        Args:
            gateway_url: Base URL of the IPFS gateway
            timeout: Request timeout in seconds
            client: Optional preconfigured httpx client
        """
        self.gateway_url = gateway_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def fetch(self, cid: str) -> BlobContent:
        if not cid:
            raise ValueError("cid must not be empty")

        url = f"{self.gateway_url}/ipfs/{cid}"
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            raise TransportError(self.SERVICE, f"request failed: {exc}") from exc

        if response.status_code != 200:
            raise TransportError(
                self.SERVICE,
                f"unexpected status {response.status_code}",
                status_code=response.status_code,
            )

        content = response.content
        logger.debug("ipfs_blob_fetched", cid=cid, size=len(content))
        return BlobContent(
            cid=cid,
            encrypted_payload=content,
            metadata={
                "fetchedAt": utc_now().isoformat(),
                "size": len(content),
                "contentType": response.headers.get("content-type", "application/octet-stream"),
            },
        )

    async def aclose(self) -> None:
        await self._client.aclose()


class InMemoryBlobStore:
    """Dict-backed blob store for development and tests."""

    def __init__(self, blobs: Optional[Dict[str, BlobContent]] = None):
        self.blobs: Dict[str, BlobContent] = dict(blobs or {})
        self.fetched: list = []

    def put(self, blob: BlobContent) -> None:
        self.blobs[blob.cid] = blob

    async def fetch(self, cid: str) -> BlobContent:
        self.fetched.append(cid)
        try:
            return self.blobs[cid]
        except KeyError:
            raise TransportError("memory", f"blob {cid} not available") from None
