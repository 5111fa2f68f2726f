import pytest
import pytest_asyncio
from aiohttp.test_utils import TestServer

from fakes import FakeRelay


@pytest.fixture
def fake_relay() -> FakeRelay:
    return FakeRelay()


@pytest_asyncio.fixture
async def relay_server(fake_relay: FakeRelay):
    """Serve ``fake_relay`` on an ephemeral port; yields its base URL."""
    async with TestServer(fake_relay.build_app()) as server:
        yield str(server.make_url("/"))
