"""
Unit tests for services.bridge.service module.

Tests:
- Bridge construction loads subscribers and cached profiles from disk
- build_pipeline() wiring
- run(): task supervision, shutdown, failure propagation and teardown
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from nostrcord.core.exceptions import TransportError
from nostrcord.models.constants import ServiceName
from nostrcord.services.bridge import Bridge, RelayPipeline


MODULE = "nostrcord.services.bridge.service"


async def forever(*_args, **_kwargs):
    await asyncio.Event().wait()


@pytest.fixture
def bridge(bridge_config):
    return Bridge(bridge_config)


@pytest.fixture
def fake_transport(bridge_identity):
    transport = MagicMock()
    transport.identity = bridge_identity
    transport.connect = AsyncMock(return_value=["wss://relay.example.com"])
    transport.close = AsyncMock()
    transport.listen = AsyncMock(side_effect=forever)
    return transport


@pytest.fixture
def fake_gateway():
    gateway = MagicMock()
    gateway.start = AsyncMock(side_effect=forever)
    gateway.close = AsyncMock()
    gateway.is_closed.return_value = False
    return gateway


@pytest.fixture
def wired(bridge, fake_transport, fake_gateway):
    """Patch both network adapters for the duration of a test."""
    with (
        patch.object(bridge, "_create_transport", return_value=fake_transport),
        patch(f"{MODULE}.DiscordGateway", return_value=fake_gateway),
    ):
        yield bridge


class TestConstruction:
    def test_service_name(self, bridge):
        assert bridge.SERVICE_NAME is ServiceName.BRIDGE

    def test_identity(self, bridge, bridge_identity):
        assert bridge.identity == bridge_identity

    def test_memory_only(self, bridge):
        assert bridge.registry.path is None
        assert bridge.cache.path is None
        assert len(bridge.registry) == 0

    def test_loads_state_from_disk(self, tmp_path, bridge_config, alice, named_profile):
        subscribers = tmp_path / "subscribers.txt"
        subscribers.write_text(f"{alice.to_bech32()}\n")
        (tmp_path / "metadata_cache.json").write_text(
            json.dumps({alice.to_bech32(): named_profile.to_dict()})
        )
        config = bridge_config.model_copy(
            update={
                "storage": bridge_config.storage.model_copy(
                    update={
                        "subscribers_file": subscribers,
                        "metadata_cache_file": tmp_path / "metadata_cache.json",
                    }
                )
            }
        )

        bridge = Bridge(config)

        assert bridge.registry.contains(alice)
        assert bridge.cache.get(alice) == named_profile

    def test_metadata_settings_applied(self, bridge_config):
        config = bridge_config.model_copy(
            update={
                "metadata": bridge_config.metadata.model_copy(
                    update={"lifetime": 600, "fetch_timeout": 3.0}
                )
            }
        )
        assert Bridge(config).cache.lifetime == 600


class TestBuildPipeline:
    def test_wiring(self, bridge, fake_transport, gateway, bridge_identity):
        pipeline = bridge.build_pipeline(gateway, fake_transport)
        assert isinstance(pipeline, RelayPipeline)
        assert pipeline.outbound.maxsize == bridge.config.queue_size
        assert pipeline.inbound.maxsize == bridge.config.queue_size


class TestRun:
    async def test_shutdown_stops_everything(self, wired, fake_transport, fake_gateway):
        run = asyncio.create_task(wired.run())
        await asyncio.sleep(0.01)
        wired.request_shutdown()
        await asyncio.wait_for(run, timeout=1.0)

        fake_transport.connect.assert_awaited_once()
        fake_transport.listen.assert_awaited_once()
        fake_gateway.start.assert_awaited_once_with("discord-test-token")
        fake_gateway.close.assert_awaited_once()
        fake_transport.close.assert_awaited_once()

    async def test_gateway_sink_bound_to_pipeline(self, wired, fake_gateway):
        run = asyncio.create_task(wired.run())
        await asyncio.sleep(0.01)
        wired.request_shutdown()
        await asyncio.wait_for(run, timeout=1.0)
        assert fake_gateway.sink.__self__.__class__ is RelayPipeline
        assert fake_gateway.sink.__name__ == "submit_chat_event"

    async def test_listener_receives_pipeline_sink(self, wired, fake_transport):
        run = asyncio.create_task(wired.run())
        await asyncio.sleep(0.01)
        wired.request_shutdown()
        await asyncio.wait_for(run, timeout=1.0)
        sink = fake_transport.listen.call_args.args[0]
        assert sink.__name__ == "submit_direct_message"

    async def test_stopped_task_ends_run(self, wired, fake_gateway, fake_transport, caplog):
        fake_gateway.start = AsyncMock(return_value=None)
        with caplog.at_level("WARNING"):
            await asyncio.wait_for(wired.run(), timeout=1.0)
        assert "task_stopped" in caplog.text
        fake_transport.close.assert_awaited_once()

    async def test_failed_task_propagates(self, wired, fake_transport, fake_gateway):
        fake_transport.listen = AsyncMock(side_effect=RuntimeError("subscription lost"))
        with pytest.raises(RuntimeError, match="subscription lost"):
            await asyncio.wait_for(wired.run(), timeout=1.0)
        fake_gateway.close.assert_awaited_once()
        fake_transport.close.assert_awaited_once()

    async def test_connect_failure(self, wired, fake_transport, fake_gateway):
        fake_transport.connect = AsyncMock(side_effect=TransportError("no relay"))
        with pytest.raises(TransportError):
            await wired.run()
        fake_gateway.start.assert_not_called()
        fake_transport.close.assert_awaited_once()

    async def test_closed_gateway_not_closed_again(self, wired, fake_gateway):
        fake_gateway.is_closed.return_value = True
        fake_gateway.start = AsyncMock(return_value=None)
        await asyncio.wait_for(wired.run(), timeout=1.0)
        fake_gateway.close.assert_not_called()

