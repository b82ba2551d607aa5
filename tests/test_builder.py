"""Tests for the hierarchy builder."""

import pytest
from src.hierarchy_sitemap.builder import SitemapBuilder
from src.hierarchy_sitemap.exceptions import ConfigError
from src.hierarchy_sitemap.l10n import LocaleContext
from src.hierarchy_sitemap.presenter import Presenter
from src.hierarchy_sitemap.record_source import MemoryCollection, MemoryRecordSource, Record
from src.hierarchy_sitemap.sitemap_writer import SitemapWriter
from src.hierarchy_sitemap.transformers import Transformer, TransformerFactory

BASE_URL = "https://example.com"


class CountingCollection(MemoryCollection):
    def __init__(self, source):
        super().__init__(source.records)
        self.source = source

    async def load(self):
        self.source.loaded.append(self.model)
        return await super().load()


class CountingSource(MemoryRecordSource):
    """Memory source recording which record types were loaded."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.loaded = []

    def collection(self):
        return CountingCollection(self)


class PageTransformer(Transformer):
    shape = ["id", "title", "url", "has_articles"]


class ArticleTransformer(Transformer):
    shape = ["id", "title", "url", "modified"]


def make_page(id, title, url, has_articles=True, active=None, position=0):
    return Record(
        obj_type="page",
        id=id,
        data={"has_articles": has_articles, "position": position},
        translations={"title": title, "url": url},
        active_routes=active,
    )


def make_article(id, page_id, active=None):
    return Record(
        obj_type="article",
        id=id,
        data={"page_id": page_id, "modified": f"2024-01-0{id}"},
        translations={
            "title": {"en": f"Article {id}", "fr": f"Article {id} (fr)"},
            "url": {"en": f"/en/articles/{id}", "fr": f"/fr/articles/{id}"},
        },
        active_routes=active,
    )


def make_builder(records, locales=("en", "fr"), hierarchical_types=(), transformers=None):
    source = CountingSource(records, hierarchical_types)
    presenter = Presenter(TransformerFactory(transformers or {}))
    builder = SitemapBuilder(BASE_URL, source, LocaleContext(locales), presenter)
    return builder, source


@pytest.fixture
def home():
    return make_page(1, {"en": "Home", "fr": "Accueil"}, {"en": "/home", "fr": "/accueil"})


@pytest.mark.asyncio
async def test_end_to_end_scenario(home):
    """One page in two locales yields two links pointing at each other."""
    builder, _ = make_builder([home])
    builder.set_object_hierarchy({
        "default": {"objects": {"page": {"label": "{{title}}", "url": "{{url}}"}}},
    })

    forest = await builder.build("default")

    assert len(forest) == 1
    english, french = forest[0]

    assert (english.label, english.url, english.lang, english.level) == ("Home", "/home", "en", 1)
    assert [(a.url, a.lang) for a in english.alternates] == [("/accueil", "fr")]
    assert (french.label, french.url, french.lang) == ("Accueil", "/accueil", "fr")
    assert [(a.url, a.lang) for a in french.alternates] == [("/home", "en")]

    xml = SitemapWriter(BASE_URL).to_xml(forest)
    assert xml.count("<url>") == 2
    assert 'hreflang="fr" href="https://example.com/accueil"' in xml
    assert 'hreflang="en" href="https://example.com/home"' in xml
    assert "<loc>https://example.com/home</loc>" in xml
    assert "<loc>https://example.com/accueil</loc>" in xml


@pytest.mark.asyncio
async def test_build_without_definition_returns_empty():
    """Nothing to build when no definition was set."""
    builder, source = make_builder([])

    assert await builder.build("default") == []
    assert source.loaded == []


@pytest.mark.asyncio
async def test_unknown_sitemap_raises(home):
    """Unknown sitemap identifiers are configuration errors."""
    builder, _ = make_builder([home])
    builder.set_object_hierarchy({"default": {"objects": {"page": {}}}})

    with pytest.raises(ConfigError):
        await builder.build("nonexistent")


@pytest.mark.asyncio
async def test_sitemap_without_objects_raises(home):
    """A sitemap must define its objects."""
    builder, _ = make_builder([home])
    builder.set_object_hierarchy({"default": {"l10n": True}})

    with pytest.raises(ConfigError):
        await builder.build("default")


def test_missing_dependencies_raise():
    """The builder refuses to start without its collaborators."""
    with pytest.raises(ConfigError):
        SitemapBuilder("", MemoryRecordSource(), LocaleContext(["en"]), Presenter())

    with pytest.raises(ConfigError):
        SitemapBuilder(BASE_URL, None, LocaleContext(["en"]), Presenter())

    with pytest.raises(ConfigError):
        SitemapBuilder(BASE_URL, MemoryRecordSource(), None, Presenter())


@pytest.mark.asyncio
async def test_locale_completeness_and_children():
    """Every record yields one link per locale, children nest one level deeper."""
    page = make_page(1, {"en": "Blog", "fr": "Blogue"}, {"en": "/blog", "fr": "/blogue"})
    articles = [make_article(1, 1), make_article(2, 1), make_article(3, 2)]
    builder, _ = make_builder(
        [page, *articles],
        transformers={"page": PageTransformer, "article": ArticleTransformer},
    )
    builder.set_object_hierarchy({
        "default": {
            "objects": {
                "page": {
                    "children": {
                        "article": {
                            "filters": [{"property": "page_id", "val": "{{id}}"}],
                            "last_modified": "{{modified}}",
                        },
                    },
                },
            },
        },
    })

    forest = await builder.build()
    pages = forest[0]

    assert [link.lang for link in pages] == ["en", "fr"]
    for link in pages:
        assert len(link.children) == 1
        children = link.children[0]
        # Two matching articles in two locales, locale-major
        assert [(child.lang, child.level) for child in children] == [
            ("en", 2), ("en", 2), ("fr", 2), ("fr", 2),
        ]
        assert [child.url for child in children] == [
            "/en/articles/1", "/en/articles/2", "/fr/articles/1", "/fr/articles/2",
        ]
        for child in children:
            assert len(child.alternates) == 1
            assert all(alternate.lang != child.lang for alternate in child.alternates)

    assert pages[0].children[0][0].last_modified == "2024-01-01"
    assert pages[0].last_modified == ""
    assert pages[0].priority == ""


@pytest.mark.asyncio
async def test_condition_prunes_before_fetch():
    """A false condition skips the child without loading its records."""
    page = make_page(1, {"en": "About"}, {"en": "/about"}, has_articles=False)
    builder, source = make_builder([page, make_article(1, 1)], locales=("en",),
                                   transformers={"page": PageTransformer})
    builder.set_object_hierarchy({
        "default": {
            "objects": {
                "page": {
                    "children": {
                        "article": {"condition": "{{has_articles}}"},
                    },
                },
            },
        },
    })

    forest = await builder.build()

    assert forest[0][0].children == [[]]
    assert source.loaded == ["page"]


@pytest.mark.asyncio
async def test_condition_true_visits_children():
    """A true condition lets the child load."""
    page = make_page(1, {"en": "News"}, {"en": "/news"}, has_articles=True)
    builder, source = make_builder([page, make_article(1, 1)], locales=("en",),
                                   transformers={"page": PageTransformer})
    builder.set_object_hierarchy({
        "default": {
            "objects": {
                "page": {"children": {"article": {"condition": "{{has_articles}}"}}},
            },
        },
    })

    forest = await builder.build()

    assert len(forest[0][0].children[0]) == 1
    assert source.loaded == ["page", "article"]


@pytest.mark.asyncio
async def test_inactive_route_is_skipped_per_locale():
    """Inactive records have no link and no alternate in that locale."""
    page = make_page(
        1, {"en": "Shop", "fr": "Boutique"}, {"en": "/shop", "fr": "/boutique"},
        active={"en": True, "fr": False},
    )
    other = make_page(
        2, {"en": "Press", "fr": "Presse"}, {"en": "/press", "fr": "/presse"},
        active={"en": False, "fr": True},
    )
    builder, _ = make_builder([page, other])
    builder.set_object_hierarchy({"default": {"objects": {"page": {}}}})

    links = (await builder.build())[0]

    assert [(link.url, link.lang) for link in links] == [("/shop", "en"), ("/presse", "fr")]
    assert all(link.alternates == [] for link in links)


@pytest.mark.asyncio
async def test_check_active_routes_disabled():
    """With route checks disabled every record is listed."""
    page = make_page(1, {"en": "Shop", "fr": "Boutique"}, {"en": "/shop", "fr": "/boutique"},
                     active=False)
    builder, _ = make_builder([page])
    builder.set_object_hierarchy({
        "default": {"check_active_routes": False, "objects": {"page": {}}},
    })

    links = (await builder.build())[0]

    assert len(links) == 2
    assert [len(link.alternates) for link in links] == [1, 1]


@pytest.mark.asyncio
async def test_absolute_urls():
    """relative_urls false rewrites URLs onto the base origin."""
    page = make_page(1, {"en": "Search"}, {"en": "/foo?q=1#bar"})
    builder, _ = make_builder([page], locales=("en",))
    builder.set_object_hierarchy({
        "default": {"objects": {"page": {"relative_urls": False}}},
    })

    link = (await builder.build())[0][0]

    assert link.url == "https://example.com/foo?q=1#bar"


@pytest.mark.asyncio
async def test_l10n_disabled_uses_single_locale(home):
    """Without l10n only the configured locale is built, with no alternates."""
    builder, _ = make_builder([home])
    builder.set_object_hierarchy({
        "default": {"objects": {"page": {"l10n": False, "locale": "fr"}}},
    })

    links = (await builder.build())[0]

    assert [(link.label, link.lang) for link in links] == [("Accueil", "fr")]
    assert links[0].alternates == []


@pytest.mark.asyncio
async def test_options_cascade_to_children():
    """Children inherit flags from their parent unless they set their own."""
    page = make_page(1, {"en": "Blog", "fr": "Blogue"}, {"en": "/blog", "fr": "/blogue"})
    builder, _ = make_builder([page, make_article(1, 1)], transformers={"page": PageTransformer})
    builder.set_object_hierarchy({
        "default": {
            "objects": {
                "page": {
                    "l10n": False,
                    "children": {
                        "article": {"filters": {"by_page": {"property": "page_id", "val": "{{id}}"}}},
                    },
                },
            },
        },
    })

    links = (await builder.build())[0]

    # Default locale only, inherited by the article child
    assert [link.lang for link in links] == ["en"]
    assert [child.lang for child in links[0].children[0]] == ["en"]

    builder.set_object_hierarchy({
        "default": {
            "objects": {
                "page": {
                    "l10n": False,
                    "children": {
                        "article": {"l10n": True, "filters": [{"property": "page_id", "val": "{{id}}"}]},
                    },
                },
            },
        },
    })

    links = (await builder.build())[0]

    assert [child.lang for child in links[0].children[0]] == ["en", "fr"]


@pytest.mark.asyncio
async def test_data_priority_and_orders():
    """Orders are applied and data, priority and labels are rendered."""
    pages = [
        make_page(1, {"en": "First"}, {"en": "/first"}, position=2),
        make_page(2, {"en": "Second"}, {"en": "/second"}, position=1),
    ]
    builder, _ = make_builder(pages, locales=("en",))
    builder.set_object_hierarchy({
        "default": {
            "objects": {
                "page": {
                    "label": "  {{title}}  ",
                    "priority": 0.5,
                    "orders": [{"property": "position", "mode": "asc"}],
                    "data": {"id": "{{id}}", "meta": {"path": "{{url}}"}, "tags": ["{{title}}", 1]},
                },
            },
        },
    })

    links = (await builder.build())[0]

    assert [link.label for link in links] == ["Second", "First"]
    assert links[0].priority == "0.5"
    assert links[0].data == {"id": "2", "meta": {"path": "/second"}, "tags": ["Second", 1]}


@pytest.mark.asyncio
async def test_hierarchical_types_filter_on_master():
    """Hierarchical records are scoped to their parent record."""
    categories = [
        Record(obj_type="category", id=1, translations={"title": {"en": "Root"}, "url": {"en": "/root"}}),
        Record(obj_type="category", id=2, master=1,
               translations={"title": {"en": "Child"}, "url": {"en": "/root/child"}}),
        Record(obj_type="category", id=3, master=2,
               translations={"title": {"en": "Grandchild"}, "url": {"en": "/root/child/grand"}}),
    ]
    builder, _ = make_builder(categories, locales=("en",), hierarchical_types={"category"})
    builder.set_object_hierarchy({
        "default": {"objects": {"category": {"children": {"category": {}}}}},
    })

    links = (await builder.build())[0]

    assert [link.label for link in links] == ["Root"]
    assert [child.label for child in links[0].children[0]] == ["Child"]


@pytest.mark.asyncio
async def test_multiple_top_level_entries_keep_their_slot(home):
    """Each top-level entry has a slot in the forest, even when empty."""
    builder, _ = make_builder([home])
    builder.set_object_hierarchy({
        "default": {"objects": {"news": {}, "page": {}}},
    })

    forest = await builder.build()

    assert len(forest) == 2
    assert forest[0] == []
    assert len(forest[1]) == 2


@pytest.mark.asyncio
async def test_record_source_errors_propagate(home):
    """Errors from the record source abort the build."""
    class FailingCollection(MemoryCollection):
        async def load(self):
            raise RuntimeError("database unavailable")

    class FailingSource(MemoryRecordSource):
        def collection(self):
            return FailingCollection(self.records)

    builder = SitemapBuilder(BASE_URL, FailingSource([home]), LocaleContext(["en"]), Presenter())
    builder.set_object_hierarchy({"default": {"objects": {"page": {}}}})

    with pytest.raises(RuntimeError):
        await builder.build()


def test_invalid_definition_keeps_previous(home):
    """A definition that fails to normalize is rejected."""
    builder, _ = make_builder([home])
    builder.set_object_hierarchy({"default": {"objects": {"page": {}}}})

    with pytest.raises(ConfigError):
        builder.set_object_hierarchy({"default": {"objects": {"page": {"l10n": "yes"}}}})

    assert "default" in builder.definition


def test_locale_context():
    """Locale contexts validate their locales."""
    locales = LocaleContext(["en", " fr "])

    assert locales.available_locales() == ["en", "fr"]
    assert locales.get_current_locale() == "en"

    locales.set_current_locale("fr")
    assert locales.get_current_locale() == "fr"

    with pytest.raises(ConfigError):
        locales.set_current_locale("de")
    with pytest.raises(ConfigError):
        LocaleContext([])
    with pytest.raises(ConfigError):
        LocaleContext(["en"], "fr")


@pytest.mark.asyncio
async def test_unlocalized_nodes_use_current_locale(home):
    """Without l10n or an explicit locale, the current locale is rendered."""
    builder, source = make_builder([])
    source.add(home)
    builder.locale_context.set_current_locale("fr")
    builder.set_object_hierarchy({"default": {"l10n": False, "objects": {"page": {}}}})

    links = (await builder.build("default"))[0]

    assert [(link.url, link.lang, link.alternates) for link in links] == [("/accueil", "fr", [])]


@pytest.mark.asyncio
async def test_memory_collection_criteria():
    """In-memory collections filter and order like the store."""
    source = MemoryRecordSource([
        make_page(1, {"en": "Home"}, {"en": "/"}, position=2),
        make_page(2, {"en": "Blog"}, {"en": "/blog"}, position=1),
        make_page(3, {"en": "Blog archive"}, {"en": "/blog/archive"}, position=None),
        make_article(4, 2),
    ])

    async def ids(filters=None, orders=None):
        collection = source.collection().set_model("page")
        collection.add_filters(filters or [])
        collection.add_orders(orders or [])
        return [record.id for record in await collection.load()]

    assert await ids() == [1, 2, 3]
    assert await ids([{"property": "id", "val": [1, 3], "operator": "in"}]) == [1, 3]
    assert await ids([{"property": "id", "val": 2, "operator": ">"}]) == [3]
    assert await ids([{"property": "position", "operator": "IS NULL"}]) == [3]
    assert await ids([{"property": "position", "val": 1, "operator": ">="}]) == [1, 2]
    assert await ids(orders=[{"property": "position"}]) == [2, 1, 3]
    assert await ids(orders=[{"property": "id", "mode": "desc"}]) == [3, 2, 1]

    collection = source.collection().set_model("page").add_filter("has_articles", True)
    assert len(await collection.load()) == 3

    collection = source.collection().set_model("article").add_filter("page_id", "%2", "LIKE")
    assert [record.id for record in await collection.load()] == [4]
