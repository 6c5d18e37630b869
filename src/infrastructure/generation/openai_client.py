from __future__ import annotations

import base64
import hashlib
import logging
import os
from io import BytesIO

import numpy as np
from openai import OpenAI, OpenAIError
from PIL import Image

logger = logging.getLogger(__name__)


def _placeholder_png(prompt: str, size: int = 256) -> bytes:
    """Render a gradient whose colours are derived from the prompt text."""
    digest = hashlib.sha256(prompt.encode("utf-8")).digest()
    start = np.frombuffer(digest[:3], dtype=np.uint8).astype(np.float32)
    end = np.frombuffer(digest[3:6], dtype=np.uint8).astype(np.float32)
    ramp = np.linspace(0.0, 1.0, size, dtype=np.float32)[:, None, None]
    rows = start * (1.0 - ramp) + end * ramp
    pixels = np.broadcast_to(rows, (size, size, 3)).astype(np.uint8)
    buf = BytesIO()
    Image.fromarray(pixels).save(buf, format="PNG")
    return buf.getvalue()


class ImageGenerationClient:
    """Text-to-image generation through the OpenAI Images API.

    When OPENAI_DISABLED=1, returns a deterministic placeholder PNG as a data URL.
    """

    def __init__(self) -> None:
        self.disabled = os.getenv("OPENAI_DISABLED", "0") == "1"
        self.model = os.getenv("OPENAI_IMAGE_MODEL", "dall-e-3")
        self.size = os.getenv("OPENAI_IMAGE_SIZE", "1024x1024")
        api_key = os.getenv("OPENAI_API_KEY")
        self._client: OpenAI | None = None
        if not self.disabled and api_key:
            self._client = OpenAI(api_key=api_key)

    def generate(self, prompt: str) -> str:
        """Generate one image and return a transient URL for it."""
        if not prompt or not prompt.strip():
            raise ValueError("Prompt cannot be empty")
        if self.disabled:
            encoded = base64.b64encode(_placeholder_png(prompt)).decode("ascii")
            return f"data:image/png;base64,{encoded}"
        if self._client is None:
            raise RuntimeError(
                "OpenAI API key is not configured. Please add OPENAI_API_KEY to your environment."
            )

        logger.info("Requesting %s image from %s", self.size, self.model)
        try:  # pragma: no cover - network
            result = self._client.images.generate(
                model=self.model,
                prompt=prompt,
                n=1,
                size=self.size,
            )
        except OpenAIError as exc:  # pragma: no cover - network
            raise RuntimeError(f"Image generation failed: {exc}") from exc

        image = result.data[0] if result.data else None  # pragma: no cover - network
        if image is not None and image.url:  # pragma: no cover - network
            return image.url
        if image is not None and image.b64_json:  # pragma: no cover - network
            return f"data:image/png;base64,{image.b64_json}"
        raise RuntimeError("Image generation response missing both URL and data")  # pragma: no cover
