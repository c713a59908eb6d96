"""
PumpPortal content upload adapter (token images and metadata).
"""

import logging
from typing import Any, Dict, Optional

import aiohttp

from ..config.models import HttpConfig, PumpPortalConfig
from ..envelope import Envelope, ProviderError
from ..models.core import UploadResult
from .base import BaseAdapter


logger = logging.getLogger(__name__)


class PumpPortalAdapter(BaseAdapter):
    """Uploads images and metadata JSON, returning content-addressed URIs."""

    provider_name = "pumpportal"

    def __init__(self, config: PumpPortalConfig, http_config: Optional[HttpConfig] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        self.config = config
        api_key = self._require(config.api_key, "PUMPPORTAL_API_KEY")
        super().__init__(
            config.base_url,
            http_config=http_config,
            headers={"Authorization": f"Bearer {api_key}"},
            session=session,
        )

    @staticmethod
    def _upload_result(body: Any) -> UploadResult:
        if not isinstance(body, dict):
            raise ProviderError("Unexpected upload response", details=body)
        # A 200 response can still carry an error message
        if body.get("error"):
            raise ProviderError(str(body["error"]), details=body)
        return UploadResult.from_api(body)

    async def upload_image(self, data: bytes, filename: str,
                           content_type: str = "image/png") -> Envelope[UploadResult]:
        """
        Upload an image as the multipart ``file`` field.

        Size and type checks are left to the provider.
        """
        async def _upload_image():
            form = aiohttp.FormData()
            form.add_field("file", data, filename=filename, content_type=content_type)
            body = await self._post("/upload/img", data=form)
            return self._upload_result(body)

        return await self._call("upload_image", _upload_image)

    async def upload_metadata(self, metadata: Dict[str, Any]) -> Envelope[UploadResult]:
        """Upload token metadata (name, symbol, description, image, socials)."""
        async def _upload_metadata():
            body = await self._post(
                "/upload/meta",
                json_body=metadata,
                headers={"Content-Type": "application/json"},
            )
            return self._upload_result(body)

        return await self._call("upload_metadata", _upload_metadata)
