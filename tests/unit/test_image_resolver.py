"""Unit tests for image invocation detection and resolution."""

import base64
from unittest.mock import MagicMock

import httpx
import pytest

from project_chat.chat.capabilities import ImageSize
from project_chat.core.errors import UpstreamError
from project_chat.core.image_resolver import (
    ImageGenerator,
    ImageInvocation,
    ImageResolver,
    encode_data_url,
    find_image_invocation,
)
from project_chat.core.llm_adapter import CapabilityInvocation, ModelTurnResult
from tests.fakes import PNG_BYTES, REMOTE_IMAGE_URL, image_response


def _result(*invocations):
    return ModelTurnResult(assistant_text="", invocations=list(invocations))


class TestFindImageInvocation:

    def test_none_without_calls(self):
        assert find_image_invocation(_result(), "draw a boat") is None

    def test_ignores_other_function_names(self):
        call = CapabilityInvocation("lookup_weather", {"city": "Oslo"})
        assert find_image_invocation(_result(call), "draw") is None

    def test_prompt_supplied_and_size_defaults_to_square(self):
        call = CapabilityInvocation("generate_image", {"prompt": "a red bicycle"})
        invocation = find_image_invocation(_result(call), "please draw something")
        assert invocation == ImageInvocation(prompt="a red bicycle", size=ImageSize.SQUARE)

    def test_missing_prompt_falls_back_to_user_text(self):
        call = CapabilityInvocation("generate_image", {"size": "1536x1024"})
        invocation = find_image_invocation(_result(call), "a lighthouse at dusk")
        assert invocation.prompt == "a lighthouse at dusk"
        assert invocation.size is ImageSize.LANDSCAPE

    def test_blank_prompt_falls_back_to_user_text(self):
        call = CapabilityInvocation("generate_image", {"prompt": "   "})
        assert find_image_invocation(_result(call), "fallback").prompt == "fallback"

    def test_invalid_size_becomes_square(self):
        call = CapabilityInvocation("generate_image", {"prompt": "x", "size": "4000x4000"})
        assert find_image_invocation(_result(call), "u").size is ImageSize.SQUARE

    def test_only_first_invocation_honoured(self):
        first = CapabilityInvocation("generate_image", {"prompt": "first"})
        second = CapabilityInvocation("generate_image", {"prompt": "second"})
        assert find_image_invocation(_result(first, second), "u").prompt == "first"


class TestImageResolver:

    def test_inline_base64_wrapped_as_data_url(self, images, image_client, fetch_log):
        resolved = images.resolve(ImageInvocation(prompt="a red bicycle"))
        assert resolved.data_url == "data:image/png;base64,aW1hZ2U="
        assert resolved.origin == "inline"
        assert resolved.source_prompt == "a red bicycle"
        assert fetch_log == []
        kwargs = image_client.images.generate.call_args.kwargs
        assert kwargs["prompt"] == "a red bicycle"
        assert kwargs["size"] == "1024x1024"

    def test_remote_url_fetched_and_reencoded(self, images, image_client, fetch_log):
        image_client.images.generate.return_value = image_response(url=REMOTE_IMAGE_URL)
        resolved = images.resolve(ImageInvocation(prompt="p", size=ImageSize.PORTRAIT))
        expected = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("ascii")
        assert resolved.data_url == expected
        assert resolved.origin == "fetched"
        assert fetch_log == [REMOTE_IMAGE_URL]

    def test_refetch_http_error_keeps_raw_url(self, images, image_client):
        missing = "https://images.example.com/expired.png"
        image_client.images.generate.return_value = image_response(url=missing)
        resolved = images.resolve(ImageInvocation(prompt="p"))
        assert resolved.data_url == missing
        assert resolved.origin == "remote_url"
        assert resolved.degraded

    def test_refetch_transport_error_keeps_raw_url(self, image_client):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        image_client.images.generate.return_value = image_response(url=REMOTE_IMAGE_URL)
        resolver = ImageResolver(ImageGenerator(client=image_client), client)
        resolved = resolver.resolve(ImageInvocation(prompt="p"))
        assert resolved.data_url == REMOTE_IMAGE_URL
        assert resolved.degraded

    def test_malformed_url_keeps_raw_url(self, images, image_client, fetch_log):
        malformed = "http://[::1/a.png"
        image_client.images.generate.return_value = image_response(url=malformed)
        resolved = images.resolve(ImageInvocation(prompt="p"))
        assert resolved.data_url == malformed
        assert resolved.origin == "remote_url"
        assert fetch_log == []

    def test_content_type_preserved(self, image_client):
        def handler(request):
            return httpx.Response(200, content=b"jpeg", headers={"content-type": "image/jpeg; charset=binary"})

        client = httpx.Client(transport=httpx.MockTransport(handler))
        image_client.images.generate.return_value = image_response(url=REMOTE_IMAGE_URL)
        resolved = ImageResolver(ImageGenerator(client=image_client), client).resolve(ImageInvocation(prompt="p"))
        assert resolved.data_url == encode_data_url(b"jpeg", "image/jpeg")

    def test_empty_image_response_returns_none(self, images, image_client):
        image_client.images.generate.return_value = image_response()
        assert images.resolve(ImageInvocation(prompt="p")) is None

    def test_no_data_returns_none(self, images, image_client):
        image_client.images.generate.return_value = MagicMock(data=[])
        assert images.resolve(ImageInvocation(prompt="p")) is None

    def test_image_api_failure_is_upstream_error(self, images, image_client):
        image_client.images.generate.side_effect = RuntimeError("quota exceeded")
        with pytest.raises(UpstreamError) as exc:
            images.resolve(ImageInvocation(prompt="p"))
        assert exc.value.status == 502
