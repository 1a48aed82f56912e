"""Image generation for project chat turns.

Finds the model's generate_image call, runs it against the OpenAI Images API,
and normalizes the result to a self-contained data URL. Remote URLs are
re-fetched and inlined; if that fetch fails the raw URL is kept and marked.
"""

import base64
import os
from dataclasses import dataclass
from typing import Any, Literal

import httpx
import structlog
from openai import OpenAI

from project_chat.chat.capabilities import IMAGE_TOOL_NAME, ImageSize
from project_chat.core.errors import UpstreamError
from project_chat.core.llm_adapter import ModelTurnResult

logger = structlog.get_logger(__name__)

DEFAULT_MIME = "image/png"


@dataclass(frozen=True)
class ImageInvocation:
    """Image request with fallbacks already applied."""
    prompt: str
    size: ImageSize = ImageSize.SQUARE


@dataclass(frozen=True)
class GeneratedImage:
    """Raw image API payload: inline base64, a URL, or neither."""
    b64_json: str | None = None
    url: str | None = None


@dataclass(frozen=True)
class ResolvedImage:
    """Image attached to the assistant message.

    Attributes:
        data_url: data: URL, or the raw remote URL when origin is "remote_url".
        source_prompt: Prompt sent to the image API.
        origin: "inline" (API returned base64), "fetched" (URL re-encoded),
                or "remote_url" (re-fetch failed, URL kept as-is).
    """
    data_url: str
    source_prompt: str
    origin: Literal["inline", "fetched", "remote_url"] = "inline"

    @property
    def degraded(self) -> bool:
        return self.origin == "remote_url"


def find_image_invocation(result: ModelTurnResult, fallback_prompt: str) -> ImageInvocation | None:
    """Pick the first generate_image call, if any.

    Later image calls in the same turn are dropped.

    Args:
        result: Parsed model output.
        fallback_prompt: Current user message, used when the call has no prompt.

    Returns:
        ImageInvocation, or None when the model did not ask for an image.
    """
    calls = [i for i in result.invocations if i.name == IMAGE_TOOL_NAME]
    if not calls:
        return None

    if len(calls) > 1:
        logger.info("image.extra_invocations_dropped", dropped=len(calls) - 1)

    args = calls[0].arguments
    prompt = args.get("prompt")
    if not isinstance(prompt, str) or not prompt.strip():
        prompt = fallback_prompt
        logger.debug("image.prompt_fallback")

    return ImageInvocation(prompt=prompt.strip(), size=ImageSize.parse(args.get("size")))


def encode_data_url(data: bytes, mime: str = DEFAULT_MIME) -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


class ImageGenerator:
    """Thin wrapper over the OpenAI Images API."""

    def __init__(self, client: Any = None):
        self.model_name = os.environ.get("OPENAI_IMAGE_MODEL", "gpt-image-1")
        self.timeout = float(os.environ.get("IMAGE_TIMEOUT", "120"))
        self._client = client or OpenAI(
            api_key=os.environ.get("OPENAI_API_KEY") or None,
            timeout=self.timeout,
        )

    def generate(self, prompt: str, size: ImageSize) -> GeneratedImage:
        """Generate one image.

        Raises:
            UpstreamError: If the image API call fails.
        """
        logger.debug("image.generate", model=self.model_name, size=size.value)
        try:
            response = self._client.images.generate(
                model=self.model_name,
                prompt=prompt,
                size=size.value,
            )
        except Exception as e:
            logger.error("image.api_failed", error=str(e))
            raise UpstreamError(f"Image generation failed: {e}") from e

        data = getattr(response, "data", None) or []
        if not data:
            return GeneratedImage()

        first = data[0]
        return GeneratedImage(
            b64_json=getattr(first, "b64_json", None),
            url=getattr(first, "url", None),
        )


class ImageResolver:
    """Turns an ImageInvocation into a ResolvedImage."""

    def __init__(self, generator: ImageGenerator, http_client: httpx.Client):
        self.generator = generator
        self.http_client = http_client

    def resolve(self, invocation: ImageInvocation) -> ResolvedImage | None:
        """Generate the image and normalize it.

        Returns:
            ResolvedImage, or None when the API returned no image payload.

        Raises:
            UpstreamError: If the image API call itself fails.
        """
        generated = self.generator.generate(invocation.prompt, invocation.size)

        if generated.b64_json:
            logger.info("image.generated", origin="inline")
            return ResolvedImage(
                data_url=f"data:{DEFAULT_MIME};base64,{generated.b64_json}",
                source_prompt=invocation.prompt,
                origin="inline",
            )

        if generated.url:
            data_url = self._fetch_data_url(generated.url)
            if data_url is None:
                return ResolvedImage(data_url=generated.url, source_prompt=invocation.prompt, origin="remote_url")
            logger.info("image.generated", origin="fetched")
            return ResolvedImage(data_url=data_url, source_prompt=invocation.prompt, origin="fetched")

        logger.warning("image.empty_result")
        return None

    def _fetch_data_url(self, url: str) -> str | None:
        """Download a generated image and inline it. None if the fetch fails."""
        try:
            response = self.http_client.get(url, follow_redirects=True)
            response.raise_for_status()
        # InvalidURL is not an HTTPError subclass
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("image.fetch_failed", error=str(e))
            return None

        mime = response.headers.get("content-type", DEFAULT_MIME).split(";")[0].strip() or DEFAULT_MIME
        return encode_data_url(response.content, mime)
