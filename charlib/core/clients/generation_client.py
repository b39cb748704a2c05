"""
Client for the external image generation service.

POST /generate with the prompt, the reference asset to condition on, the
style and output size. The service answers with the image inline
(base64) or as a URL to download.
"""

import base64
import binascii
import time
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from ..errors import ServicePermanentError
from ..types import GeneratedImage, GenerationStyle, ImageDimensions
from .base import ServiceClient


class GenerationClient(ServiceClient):
    """Thin async adapter over the generation service. No business logic."""

    service_name = "generation"
    auth_scheme = "Key"

    async def generate(
        self,
        prompt: str,
        reference_asset_id: str,
        style: GenerationStyle,
        dims: ImageDimensions,
    ) -> GeneratedImage:
        """
        Generate one image conditioned on a reference asset.

        Returns:
            GeneratedImage with decoded bytes and the service-reported
            generation time (wall time if the service does not report one)

        Raises:
            ServiceTransientError: network failure, timeout, 429 or 5xx
            ServicePermanentError: 4xx, malformed response, undecodable image
        """
        start = time.monotonic()
        data = await self._request_json(
            "POST",
            "/generate",
            json={
                "prompt": prompt,
                "reference_asset_id": reference_asset_id,
                "style": style.value,
                "width": dims.width,
                "height": dims.height,
            },
        )

        if data.get("image_base64"):
            try:
                image_bytes = base64.b64decode(data["image_base64"], validate=True)
            except (binascii.Error, ValueError) as e:
                raise ServicePermanentError("generate returned invalid base64 image", self.service_name) from e
        elif data.get("image_url"):
            image_bytes = await self._download(data["image_url"])
        else:
            raise ServicePermanentError("generate response contained no image", self.service_name)

        self._verify_image(image_bytes)

        reported = data.get("generation_time_ms")
        if reported is not None:
            generation_time_ms = self._number(reported, "generation_time_ms", "generate", cast=int)
        else:
            generation_time_ms = int((time.monotonic() - start) * 1000)
        return GeneratedImage(image_bytes=image_bytes, generation_time_ms=generation_time_ms)

    async def _download(self, url: str) -> bytes:
        response = await self._request("GET", url, authenticated=self._is_same_host(url))
        if not response.content:
            raise ServicePermanentError(f"downloaded image at {url} is empty", self.service_name)
        return response.content

    def _verify_image(self, image_bytes: bytes) -> None:
        """Reject bytes that do not decode as an image."""
        try:
            with Image.open(BytesIO(image_bytes)) as img:
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise ServicePermanentError(f"generated image is not decodable: {e}", self.service_name) from e
