"""HTTP endpoint serving the sitemap."""

import logging
from typing import Optional

from aiohttp import web

from .builder import SitemapBuilder
from .cache import MemoryCache
from .config import DEFAULT_SITEMAP_IDENT
from .definition import load_definition, load_transformers
from .l10n import LocaleContext
from .presenter import Presenter
from .record_store import RecordStore
from .sitemap_writer import SitemapWriter
from .transformers import ShapeTransformer, TransformerFactory
from .types import AppConfig

logger = logging.getLogger(__name__)

BUILDER_KEY = web.AppKey("builder", SitemapBuilder)
WRITER_KEY = web.AppKey("writer", SitemapWriter)
IDENT_KEY = web.AppKey("sitemap_ident", str)


async def sitemap_handler(request: web.Request) -> web.Response:
    """GET /sitemap.xml"""
    app = request.app
    ident = app[IDENT_KEY]
    builder = app[BUILDER_KEY]

    # Records may change between requests
    builder.presenter.cache.clear()

    try:
        forest = await builder.build(ident)
    except Exception as e:
        logger.error(f"Error building sitemap {ident}: {e}")
        raise web.HTTPInternalServerError(text="Sitemap could not be built")

    xml = app[WRITER_KEY].to_xml(forest)
    if not xml:
        logger.error(f"Sitemap {ident} could not be serialized")
        raise web.HTTPInternalServerError(text="Sitemap could not be serialized")

    return web.Response(text=xml, content_type="application/xml", charset="utf-8")


def create_app(builder: SitemapBuilder, writer: SitemapWriter, ident: str = DEFAULT_SITEMAP_IDENT) -> web.Application:
    """Create the web application exposing /sitemap.xml."""
    app = web.Application()
    app[BUILDER_KEY] = builder
    app[WRITER_KEY] = writer
    app[IDENT_KEY] = ident
    app.router.add_get("/sitemap.xml", sitemap_handler)
    return app


def create_builder(config: AppConfig, record_source, presenter: Optional[Presenter] = None) -> SitemapBuilder:
    """Wire a builder from application configuration."""
    if presenter is None:
        shapes = load_transformers(config.definition_path) if config.definition_path else {}
        factory = TransformerFactory({name: ShapeTransformer(name, shape) for name, shape in shapes.items()})
        presenter = Presenter(factory, MemoryCache(max_entries=config.cache_size))

    locale_context = LocaleContext(config.locales, config.default_locale)
    builder = SitemapBuilder(
        base_url=config.base_url,
        record_source=record_source,
        locale_context=locale_context,
        presenter=presenter,
    )

    if config.definition_path:
        builder.set_object_hierarchy(load_definition(config.definition_path))

    return builder


async def init_app(config: AppConfig) -> web.Application:
    """Create the application backed by the SQLite record store."""
    store = RecordStore(config.database_path, config.hierarchical_types)
    await store.initialize()

    builder = create_builder(config, store)
    app = create_app(builder, SitemapWriter(config.base_url), config.sitemap_ident)

    async def close_store(app: web.Application) -> None:
        await store.close()

    app.on_cleanup.append(close_store)
    return app


def run_server(config: AppConfig) -> None:
    """Serve the sitemap until interrupted."""
    logger.info(f"Serving sitemap {config.sitemap_ident} on http://{config.host}:{config.port}/sitemap.xml")
    web.run_app(init_app(config), host=config.host, port=config.port, print=None)
