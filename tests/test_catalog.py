import asyncio

from conftest import FakeStorefrontClient, make_product, run

from storefront_server.catalog import ProductListing, SearchDebouncer, matches_query


def catalog_client():
    return FakeStorefrontClient(
        [
            make_product("P1", title="Cotton Shirt", category={"name": "Men's Fashion"}, brand={"name": "Puma"}),
            make_product("P2", title="Smart Watch", category={"name": "Electronics"}, brand={"name": "Samsung"}),
            make_product("P3", title="Running Shoes", description="Lightweight shirt-friendly", slug="running-shoes"),
        ]
    )


def test_matches_query_fields():
    product = make_product("P1", title="Cotton Shirt", brand={"name": "Puma"}, slug="cotton-shirt")
    assert matches_query(product, "SHIRT")
    assert matches_query(product, "puma")
    assert not matches_query(product, "watch")


def test_search_filters_client_side():
    client = catalog_client()
    listing = ProductListing(client)

    assert run(listing.search("shirt")) is True
    assert [p.id for p in listing.products] == ["P1", "P3"]
    assert listing.total_pages == 1
    assert ("fetch_products", 1, 100) in client.calls


def test_search_pages_matches_twelve_at_a_time():
    client = FakeStorefrontClient([make_product(f"B{i:02d}", title=f"Leather Bag {i}") for i in range(15)])
    listing = ProductListing(client)

    assert run(listing.search("bag", page=2)) is True
    assert len(listing.matches) == 15
    assert listing.total_pages == 2
    assert listing.current_page == 2
    assert [p.id for p in listing.products] == ["B12", "B13", "B14"]

    run(listing.search("bag"))
    assert len(listing.products) == 12
    assert listing.current_page == 1


def test_empty_search_reloads_listing():
    client = catalog_client()
    listing = ProductListing(client, page_size=2)

    run(listing.search("   "))

    assert client.calls == [("fetch_products", 1, 2)]
    assert len(listing.products) == 2
    assert listing.total_pages == 2


def test_load_failure_sets_error():
    client = catalog_client()
    client.fail("fetch_products")
    listing = ProductListing(client)

    assert run(listing.load()) is False
    assert listing.error.startswith("Failed to load products")


def test_debounce_issues_one_search_for_last_input():
    searched = []

    async def search(text):
        searched.append(text)

    async def scenario():
        debouncer = SearchDebouncer(search, delay=0.05)
        for text in ("a", "ab", "abc"):
            debouncer.submit(text)
            await asyncio.sleep(0.01)
        await debouncer.wait()

    run(scenario())
    assert searched == ["abc"]


def test_dispatched_search_is_not_cancelled():
    started = []
    finished = []

    async def scenario():
        release = asyncio.Event()

        async def search(text):
            started.append(text)
            await release.wait()
            finished.append(text)

        debouncer = SearchDebouncer(search, delay=0.01)
        debouncer.submit("a")
        await asyncio.sleep(0.05)
        assert started == ["a"]
        debouncer.submit("ab")
        release.set()
        await debouncer.wait()
        await asyncio.sleep(0)

    run(scenario())
    assert finished == ["a", "ab"]


def test_flush_searches_immediately():
    searched = []

    async def search(text):
        searched.append(text)

    async def scenario():
        debouncer = SearchDebouncer(search, delay=10)
        debouncer.submit("sho")
        await debouncer.flush("shoes")
        assert not debouncer.pending
        await debouncer.wait()

    run(scenario())
    assert searched == ["shoes"]


def test_listing_debouncer_runs_search():
    client = catalog_client()

    async def scenario():
        listing = ProductListing(client, search_delay=0.01)
        listing.debouncer.submit("wat")
        listing.debouncer.submit("watch")
        await listing.debouncer.wait()
        return listing

    listing = run(scenario())
    assert listing.query == "watch"
    assert [p.id for p in listing.products] == ["P2"]
    assert client.count("fetch_products") == 1
