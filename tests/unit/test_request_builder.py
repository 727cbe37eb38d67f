"""Unit tests for the fluent request builder."""

import base64
import json

import httpx
import pytest

from dockersdk.config import NO_TIMEOUT
from dockersdk.core.request_builder import RequestBuilder, encode_auth_header
from dockersdk.models.errors import DockerApiError, DockerDaemonError, ResourceNotFoundError


class ContainerConflict(Exception):
    pass


class TestDefaultErrorMapping:
    """404 and 500 map to domain exceptions unless handled earlier."""

    @pytest.mark.asyncio
    async def test_404_is_resource_not_found(self, make_transport):
        transport = make_transport(lambda request: httpx.Response(404, json={"message": "no such image"}))

        with pytest.raises(ResourceNotFoundError) as exc_info:
            await RequestBuilder(transport, "GET", "images/x/json").send()

        assert exc_info.value.status_code == 404
        assert exc_info.value.message_text == "no such image"

    @pytest.mark.asyncio
    async def test_500_is_daemon_error(self, make_transport):
        transport = make_transport(lambda request: httpx.Response(500, text="oops"))

        with pytest.raises(DockerDaemonError):
            await RequestBuilder(transport, "GET", "info").send()

    @pytest.mark.asyncio
    async def test_other_errors_are_generic(self, make_transport):
        transport = make_transport(lambda request: httpx.Response(409, text="conflict"))

        with pytest.raises(DockerApiError) as exc_info:
            await RequestBuilder(transport, "DELETE", "containers/web").send()

        assert type(exc_info.value) is DockerApiError

    @pytest.mark.asyncio
    async def test_default_mapping_can_be_disabled(self, make_transport):
        transport = make_transport(lambda request: httpx.Response(404))

        with pytest.raises(DockerApiError) as exc_info:
            await RequestBuilder(transport, "GET", "x").without_default_errors().send()

        assert type(exc_info.value) is DockerApiError


class TestHandlers:
    """Caller-registered status handlers."""

    @pytest.mark.asyncio
    async def test_reject_status_raises_custom_error(self, make_transport):
        transport = make_transport(lambda request: httpx.Response(409, text="name in use"))

        builder = RequestBuilder(transport, "POST", "containers/create").reject_status(
            409, lambda status, body: ContainerConflict(body)
        )

        with pytest.raises(ContainerConflict, match="name in use"):
            await builder.send()

    @pytest.mark.asyncio
    async def test_reject_status_body_condition(self, make_transport):
        transport = make_transport(lambda request: httpx.Response(409, text="something else"))

        builder = RequestBuilder(transport, "POST", "containers/create").reject_status(
            409, lambda status, body: ContainerConflict(body), when=lambda body: "in use" in body
        )

        with pytest.raises(DockerApiError):
            await builder.send()

    @pytest.mark.asyncio
    async def test_custom_404_handler_wins_over_default(self, make_transport):
        transport = make_transport(lambda request: httpx.Response(404, text="gone"))

        builder = RequestBuilder(transport, "GET", "containers/web/json").reject_status(
            404, lambda status, body: ContainerConflict(body)
        )

        with pytest.raises(ContainerConflict):
            await builder.send()

    @pytest.mark.asyncio
    async def test_accept_status(self, make_transport):
        transport = make_transport(lambda request: httpx.Response(304))

        response = await RequestBuilder(transport, "POST", "containers/web/start").accept_status(304).send()

        assert response.status_code == 304


class TestBuilding:
    """Query, headers, body and timeout."""

    @pytest.mark.asyncio
    async def test_query_and_headers(self, make_transport):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[])

        transport = make_transport(handler)
        await (
            RequestBuilder(transport, "GET", "containers/json")
            .with_query("all", True)
            .with_queries(limit=5, since=None)
            .with_headers(x_custom="yes")
            .send_json()
        )

        request = seen[0]
        assert request.url.params["all"] == "true"
        assert request.url.params["limit"] == "5"
        assert "since" not in request.url.params
        assert request.headers["X-Custom"] == "yes"

    @pytest.mark.asyncio
    async def test_send_json(self, make_transport):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(201, json={"Id": "abc", "Warnings": []})

        transport = make_transport(handler)
        result = await (
            RequestBuilder(transport, "POST", "containers/create")
            .with_json_body({"Image": "alpine"})
            .send_json()
        )

        assert result == {"Id": "abc", "Warnings": []}
        assert seen == [{"Image": "alpine"}]

    @pytest.mark.asyncio
    async def test_send_json_empty_body(self, make_transport):
        transport = make_transport(lambda request: httpx.Response(204))

        assert await RequestBuilder(transport, "POST", "containers/web/kill").send_json() is None

    @pytest.mark.asyncio
    async def test_auth_header(self, make_transport):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200)

        transport = make_transport(handler)
        auth = {"username": "me", "password": "secret"}
        await RequestBuilder(transport, "POST", "images/create").with_auth_header(auth).send()

        encoded = seen[0].headers["X-Registry-Auth"]
        assert json.loads(base64.urlsafe_b64decode(encoded)) == auth
        assert encoded == encode_auth_header(auth)

    @pytest.mark.asyncio
    async def test_with_body_replaces_content_type(self, make_transport):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200)

        transport = make_transport(handler)
        await (
            RequestBuilder(transport, "POST", "build")
            .with_body(b"first", content_type="text/plain")
            .with_body(b"archive", content_type="application/x-tar")
            .send()
        )

        assert seen[0].headers.get_list("Content-Type") == ["application/x-tar"]
        assert seen[0].content == b"archive"

    @pytest.mark.asyncio
    async def test_timeout_override(self, make_transport):
        transport = make_transport(lambda request: httpx.Response(200))
        builder = RequestBuilder(transport, "GET", "x")

        assert builder.with_timeout(NO_TIMEOUT).request.timeout == NO_TIMEOUT
        with pytest.raises(ValueError):
            builder.with_timeout(0)

    @pytest.mark.asyncio
    async def test_stream_json(self, make_transport):
        transport = make_transport(
            lambda request: httpx.Response(200, content=b'{"status": "Pulling"}\n{"status": "Done"}\n')
        )

        values = [
            value
            async for value in RequestBuilder(transport, "POST", "images/create")
            .with_query("fromImage", "alpine")
            .stream_json()
        ]

        assert values == [{"status": "Pulling"}, {"status": "Done"}]

    @pytest.mark.asyncio
    async def test_stream_lines(self, make_transport):
        transport = make_transport(lambda request: httpx.Response(200, content=b"one\ntwo\n"))

        lines = [line async for line in RequestBuilder(transport, "GET", "containers/web/logs").stream_lines()]

        assert lines == ["one", "two"]
