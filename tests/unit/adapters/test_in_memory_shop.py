import pytest

from entrant_sync.adapters.base import DirectoryClient, OrderService
from entrant_sync.adapters.memory import InMemoryShop
from entrant_sync.exceptions import RemoteCallError


@pytest.mark.unit
def test_shop_satisfies_both_protocols():
    shop = InMemoryShop()
    assert isinstance(shop, DirectoryClient)
    assert isinstance(shop, OrderService)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_search_returns_tagged_variants_like_the_real_shop():
    shop = InMemoryShop(customers=[("1", "a@example.com"), ("2", "a+vip@example.com")])

    entries = await shop.search("A@example.com")

    assert sorted(e.remote_id for e in entries) == ["1", "2"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_created_customers_are_searchable():
    shop = InMemoryShop()

    created = await shop.create({"email": "n@example.com"})
    (found,) = await shop.search("n@example.com")

    assert found.remote_id == created.remote_id


@pytest.mark.unit
@pytest.mark.asyncio
async def test_orders_require_a_known_customer():
    shop = InMemoryShop()

    with pytest.raises(RemoteCallError) as exc_info:
        await shop.create_order("404", "v", {})

    assert exc_info.value.status_code == 422
    assert shop.order_calls == [("404", "v")]
