"""Tests for the sitemap HTTP endpoint."""

import pytest
from aiohttp.test_utils import TestClient, TestServer
from src.hierarchy_sitemap.builder import SitemapBuilder
from src.hierarchy_sitemap.l10n import LocaleContext
from src.hierarchy_sitemap.presenter import Presenter
from src.hierarchy_sitemap.record_source import MemoryRecordSource, Record
from src.hierarchy_sitemap.server import create_app, create_builder
from src.hierarchy_sitemap.sitemap_writer import SitemapWriter
from src.hierarchy_sitemap.types import AppConfig

BASE_URL = "https://example.com"


def make_builder():
    source = MemoryRecordSource([
        Record(
            obj_type="page",
            id=1,
            translations={
                "title": {"en": "Home", "fr": "Accueil"},
                "url": {"en": "/home", "fr": "/accueil"},
            },
        ),
    ])
    builder = SitemapBuilder(BASE_URL, source, LocaleContext(["en", "fr"]), Presenter())
    builder.set_object_hierarchy({"default": {"objects": {"page": {}}}})
    return builder


async def fetch_sitemap(app):
    async with TestClient(TestServer(app)) as client:
        response = await client.get("/sitemap.xml")
        return response.status, response.content_type, await response.text()


@pytest.mark.asyncio
async def test_sitemap_endpoint():
    """GET /sitemap.xml returns the serialized sitemap."""
    app = create_app(make_builder(), SitemapWriter(BASE_URL))

    status, content_type, body = await fetch_sitemap(app)

    assert status == 200
    assert content_type == "application/xml"
    assert body.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert "<loc>https://example.com/home</loc>" in body
    assert 'hreflang="fr" href="https://example.com/accueil"' in body


@pytest.mark.asyncio
async def test_sitemap_endpoint_build_error():
    """Build failures are reported as server errors."""
    app = create_app(make_builder(), SitemapWriter(BASE_URL), ident="missing")

    status, _, _ = await fetch_sitemap(app)

    assert status == 500


@pytest.mark.asyncio
async def test_sitemap_endpoint_serialization_error():
    """A sitemap that cannot be serialized is a server error."""
    builder = make_builder()
    builder.set_object_hierarchy({"default": {"objects": {"page": {"url": "/bad\x00{{url}}"}}}})
    app = create_app(builder, SitemapWriter(BASE_URL))

    status, _, _ = await fetch_sitemap(app)

    assert status == 500


@pytest.mark.asyncio
async def test_presenter_cache_is_bounded_and_refreshed():
    """The configured cache size bounds presentation contexts, each request sees current records."""
    source = MemoryRecordSource([
        Record(obj_type="page", id=i, translations={"title": {"en": f"Page {i}"}, "url": {"en": f"/page-{i}"}})
        for i in range(1, 4)
    ])
    config = AppConfig(base_url=BASE_URL, locales=["en"], cache_size=2)
    builder = create_builder(config, source)
    app = create_app(builder, SitemapWriter(BASE_URL))
    builder.set_object_hierarchy({"default": {"objects": {"page": {}}}})

    async with TestClient(TestServer(app)) as client:
        body = await (await client.get("/sitemap.xml")).text()
        assert body.count("<url>") == 3
        assert builder.presenter.cache.max_entries == 2
        assert len(builder.presenter.cache) == 2

        source.records[0].translations["url"]["en"] = "/renamed"
        body = await (await client.get("/sitemap.xml")).text()

    assert "<loc>https://example.com/renamed</loc>" in body
    assert "<loc>https://example.com/page-1</loc>" not in body
