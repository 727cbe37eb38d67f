"""Unit tests for the Docker client entry point."""

import asyncio
import json

import httpx
import pytest

from dockersdk.client import DockerClient, determine_version_to_use
from dockersdk.config import TransportConfig
from dockersdk.core.signals import CancellationSignal
from dockersdk.models.errors import (
    DaemonNotFoundError,
    DockerVersionError,
    OperationCancelledError,
)
from dockersdk.models.events import ContainerEvent, ImageEvent


class TestVersionNegotiation:
    """Tests for picking the API version."""

    def test_uses_library_max_when_daemon_is_newer(self):
        info = {"ApiVersion": "1.45", "MinAPIVersion": "1.24"}

        assert determine_version_to_use("1.30", info, "1.41") == "1.41"

    def test_uses_daemon_max_when_daemon_is_older(self):
        info = {"ApiVersion": "1.38", "MinAPIVersion": "1.12"}

        assert determine_version_to_use("1.30", info, "1.41") == "1.38"

    def test_compares_numerically(self):
        info = {"ApiVersion": "1.9", "MinAPIVersion": "1.9"}

        with pytest.raises(DockerVersionError):
            determine_version_to_use("1.30", info, "1.41")

    def test_daemon_too_new(self):
        info = {"ApiVersion": "2.5", "MinAPIVersion": "2.0"}

        with pytest.raises(DockerVersionError):
            determine_version_to_use("1.30", info, "1.41")

    def test_daemon_without_version(self):
        with pytest.raises(DockerVersionError):
            determine_version_to_use("1.30", {}, "1.41")


def daemon_handler(feed_stream, version_info=None, seen=None):
    version_info = version_info or {"ApiVersion": "1.43", "MinAPIVersion": "1.12"}

    def handler(request):
        if seen is not None:
            seen.append(request)
        if request.url.path == "/version":
            return httpx.Response(200, json=version_info)
        if request.url.path.endswith("/events"):
            return httpx.Response(200, stream=feed_stream)
        return httpx.Response(200, json={"path": request.url.path})

    return handler


class TestDockerClient:
    """Tests for start-up, requests and events through the client."""

    @pytest.mark.asyncio
    async def test_start_negotiates_and_listens(self, transport_config, feed_stream):
        seen = []
        client = await DockerClient.start(
            transport_config,
            http_transport=httpx.MockTransport(daemon_handler(feed_stream, seen=seen)),
        )
        async with client:
            assert client.api_version == "1.41"
            assert client.listener.running
            assert [r.url.path for r in seen] == ["/version", "/v1.41/events"]

            response = await client.request("GET", "info")
            assert response.json() == {"path": "/v1.41/info"}

        assert not client.listener.running

    @pytest.mark.asyncio
    async def test_pinned_version_skips_negotiation(self, feed_stream):
        seen = []
        config = TransportConfig(host="tcp://docker.test:2375", api_version="1.40")

        client = await DockerClient.start(
            config, http_transport=httpx.MockTransport(daemon_handler(feed_stream, seen=seen))
        )
        await client.aclose()

        assert client.api_version == "1.40"
        assert [r.url.path for r in seen] == ["/v1.40/events"]

    @pytest.mark.asyncio
    async def test_unreachable_daemon(self, transport_config):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(DaemonNotFoundError):
            await DockerClient.start(transport_config, http_transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_signal_cancels_stalled_event_stream(self, transport_config):
        async def handler(request):
            if request.url.path == "/version":
                return httpx.Response(200, json={"ApiVersion": "1.43", "MinAPIVersion": "1.12"})
            await asyncio.sleep(30)
            return httpx.Response(200)

        signal = CancellationSignal()
        asyncio.get_running_loop().call_later(0.05, signal.cancel)

        with pytest.raises(OperationCancelledError):
            await asyncio.wait_for(
                DockerClient.start(
                    transport_config, signal=signal, http_transport=httpx.MockTransport(handler)
                ),
                2.0,
            )

    @pytest.mark.asyncio
    async def test_signal_does_not_outlive_start(self, transport_config, feed_stream):
        signal = CancellationSignal()
        client = await DockerClient.start(
            transport_config,
            signal=signal,
            http_transport=httpx.MockTransport(daemon_handler(feed_stream)),
        )
        async with client:
            signal.cancel()
            await asyncio.sleep(0)

            assert client.listener.running

    @pytest.mark.asyncio
    async def test_incompatible_daemon(self, transport_config, feed_stream):
        handler = daemon_handler(feed_stream, version_info={"ApiVersion": "1.30", "MinAPIVersion": "1.12"})

        with pytest.raises(DockerVersionError):
            await DockerClient.start(transport_config, http_transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_require_api_version(self, transport_config, feed_stream):
        client = await DockerClient.start(
            transport_config, http_transport=httpx.MockTransport(daemon_handler(feed_stream))
        )
        async with client:
            client.require_api_version("1.25")
            with pytest.raises(NotImplementedError):
                client.require_api_version(min_version="1.42")
            with pytest.raises(NotImplementedError):
                client.require_api_version(max_version="1.40")

    @pytest.mark.asyncio
    async def test_subscribe_and_dam(self, transport_config, feed_stream, make_recorder, event_record):
        live, dammed = make_recorder(), make_recorder()
        client = await DockerClient.start(
            transport_config, http_transport=httpx.MockTransport(daemon_handler(feed_stream))
        )
        async with client:
            client.subscribe(live)
            dam = client.dam(lambda event: isinstance(event, ContainerEvent))
            dam.subscribe(dammed)

            records = [
                event_record("container", "create"),
                event_record("image", "pull"),
                event_record("container", "start"),
            ]
            feed_stream.feed(b"".join(json.dumps(r).encode() for r in records))
            for _ in records:
                await live.next_notification()

            assert dammed.values == []
            assert dam.pending == 2
            dam.open()

            assert [type(e) for e in live.values] == [ContainerEvent, ImageEvent, ContainerEvent]
            assert [e.action for e in dammed.values] == ["create", "start"]

        assert live.completed == 1
        assert dammed.completed == 1
