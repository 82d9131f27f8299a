import asyncio

from home_services_api import run
from home_services_api.app.core.config import settings


def test_serve_uses_configured_host_and_port(monkeypatch):
    seen = {}

    async def fake_serve(self):
        seen["host"] = self.config.host
        seen["port"] = self.config.port

    monkeypatch.setattr(run.Server, "serve", fake_serve)
    monkeypatch.setattr(settings, "port", 8123)
    asyncio.run(run.serve())

    assert seen == {"host": settings.host, "port": 8123}
