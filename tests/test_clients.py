import asyncio
import json

import httpx
import pytest

from catalog_sync.britpart import BritpartClient, api_prefix, child_ids_of
from catalog_sync.errors import TargetWriteError, UpstreamError
from catalog_sync.models import PlanItem
from catalog_sync.sync.category_apply import apply_plan
from catalog_sync.woocommerce import WooClient

BP_BASE = "https://bp.test/api/v1"
WC_BASE = "https://shop.test"


def _britpart(handler, base=BP_BASE, token="tok"):
    return BritpartClient(base, token, transport=httpx.MockTransport(handler))


def _woo(handler):
    return WooClient(WC_BASE, "ck", "cs", transport=httpx.MockTransport(handler))


async def _with(client, fn):
    async with client as c:
        return await fn(c)


# ---- Britpart ----

def test_api_prefix_strips_full_endpoint():
    assert api_prefix("https://x.test/api/v1/part/getall") == "https://x.test/api/v1"
    assert api_prefix("https://x.test/api/v1/part/getcategories/") == "https://x.test/api/v1"
    assert api_prefix("https://x.test/api/v1/") == "https://x.test/api/v1"


def test_child_ids_union_in_order():
    raw = {"subcategories": [{"id": 4}, {"id": "5"}, {"nope": 1}], "subcategoryIds": [5, 6, 0, "x"]}
    assert child_ids_of(raw) == [4, 5, 6]


def test_fetch_category():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"id": 3, "title": "All Parts", "subcategoryIds": [10, 11]})

    node = asyncio.run(_with(_britpart(handler, base=BP_BASE + "/part/getall"), lambda c: c.fetch_category(3)))

    assert seen["path"] == "/api/v1/part/getcategories"
    assert seen["params"] == {"token": "tok", "id": "3"}
    assert node.id == 3
    assert node.display_title == "All Parts"
    assert node.child_ids == [10, 11]


@pytest.mark.parametrize("response", [
    httpx.Response(500, text="<!DOCTYPE html><html><title>Oops</title></html>"),
    httpx.Response(200, text="not json"),
    httpx.Response(200, json=["unexpected"]),
])
def test_fetch_category_failures_are_upstream_errors(response):
    with pytest.raises(UpstreamError):
        asyncio.run(_with(_britpart(lambda r: response), lambda c: c.fetch_category(3)))


def test_transport_error_is_upstream_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(UpstreamError):
        asyncio.run(_with(_britpart(handler), lambda c: c.fetch_category(3)))


def test_missing_token_fails_before_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    with pytest.raises(UpstreamError):
        asyncio.run(_with(_britpart(handler, token=""), lambda c: c.fetch_category(3)))
    assert calls == []


# ---- WooCommerce ----

def test_find_category_by_slug_requires_exact_match():
    def handler(request):
        assert request.url.path == "/wp-json/wc/v3/products/categories"
        assert request.headers["authorization"].startswith("Basic ")
        return httpx.Response(200, json=[{"id": 9, "slug": "bp-12"}])

    assert asyncio.run(_with(_woo(handler), lambda c: c.find_category_by_slug("bp-12"))) == 9
    assert asyncio.run(_with(_woo(handler), lambda c: c.find_category_by_slug("bp-1"))) is None


def test_get_category_unescapes_name():
    def handler(request):
        return httpx.Response(200, json={"id": 9, "name": "Brakes &amp; Discs", "parent": 4})

    cat = asyncio.run(_with(_woo(handler), lambda c: c.get_category(9)))
    assert cat == {"id": 9, "name": "Brakes & Discs", "parent": 4}


def test_create_category_and_failure():
    def ok(request):
        assert json.loads(request.content) == {"name": "Pads", "slug": "bp-4", "parent": 2}
        return httpx.Response(201, json={"id": 55})

    def bad(request):
        return httpx.Response(400, json={"code": "term_exists"})

    payload = {"name": "Pads", "slug": "bp-4", "parent": 2}
    assert asyncio.run(_with(_woo(ok), lambda c: c.create_category(payload))) == {"id": 55}
    with pytest.raises(TargetWriteError):
        asyncio.run(_with(_woo(bad), lambda c: c.create_category(payload)))


def test_list_categories_pages_through():
    def handler(request):
        page = int(request.url.params["page"])
        size = 100 if page == 1 else 3
        return httpx.Response(200, json=[{"id": page * 1000 + i} for i in range(size)])

    cats = asyncio.run(_with(_woo(handler), lambda c: c.list_categories()))
    assert len(cats) == 103


def test_product_lookup_and_update_status():
    def handler(request):
        if request.method == "GET":
            assert request.url.params["sku"] == "STC1"
            return httpx.Response(200, json=[{"id": 7, "regular_price": "99.00", "status": "draft"}])
        return httpx.Response(400, json={"message": "Invalid price"})

    product = asyncio.run(_with(_woo(handler), lambda c: c.find_product_by_sku("STC1")))
    assert product == {"id": 7, "regular_price": "99.00", "status": "draft"}

    res = asyncio.run(_with(_woo(handler), lambda c: c.update_product(7, {"regular_price": "1.00"})))
    assert res["ok"] is False
    assert res["status"] == 400
    assert res["body"] == {"message": "Invalid price"}


NOTICE = '<br />\n<b>Notice</b>: Undefined index in functions.php<br />\n{"id": 5}'


def test_category_reads_and_creates_reject_non_json_2xx():
    def handler(request):
        return httpx.Response(201 if request.method == "POST" else 200, text=NOTICE)

    with pytest.raises(TargetWriteError) as err:
        asyncio.run(_with(_woo(handler), lambda c: c.create_category({"name": "A", "slug": "bp-1", "parent": 0})))
    assert err.value.status == 201
    with pytest.raises(TargetWriteError):
        asyncio.run(_with(_woo(handler), lambda c: c.get_category(5)))


def test_non_json_create_fails_one_item_not_the_run():
    def handler(request):
        if request.method == "GET":
            return httpx.Response(200, json=[])
        if json.loads(request.content)["slug"] == "bp-1":
            return httpx.Response(201, text=NOTICE)
        return httpx.Response(201, json={"id": 500})

    plan = [
        PlanItem(source_id=1, slug="bp-1", name="One", action="create"),
        PlanItem(source_id=2, slug="bp-2", name="Two", action="create"),
    ]
    result = asyncio.run(_with(_woo(handler), lambda c: apply_plan(c, plan)))

    assert result.failed == 1
    assert result.created == 1
    assert result.mapping == [{"source_id": 1, "target_id": None}, {"source_id": 2, "target_id": 500}]


def test_fetch_parts_follows_total_pages():
    pages = []

    def handler(request):
        assert request.url.path == "/api/v1/part/getall"
        assert request.url.params["subcategoryId"] == "42"
        page = int(request.url.params["page"])
        pages.append(page)
        return httpx.Response(200, json={"totalPages": 3, "parts": [{"sku": f"P{page}"}, "junk"]})

    parts = asyncio.run(_with(_britpart(handler), lambda c: c.fetch_parts(42)))
    assert pages == [1, 2, 3]
    assert [p["sku"] for p in parts] == ["P1", "P2", "P3"]


def test_fetch_parts_stops_on_empty_page_and_rejects_bad_body():
    def empty(request):
        return httpx.Response(200, json={"totalPages": 9, "parts": []})

    assert asyncio.run(_with(_britpart(empty), lambda c: c.fetch_parts(42))) == []
    with pytest.raises(UpstreamError):
        asyncio.run(_with(_britpart(lambda r: httpx.Response(200, json=[1])), lambda c: c.fetch_parts(42)))


def test_list_products_reads_totals_from_headers():
    seen = {}

    def handler(request):
        seen.update(request.url.params)
        return httpx.Response(
            200,
            headers={"X-WP-Total": "31", "X-WP-TotalPages": "2"},
            json=[{
                "id": 7, "sku": "STC1", "name": "Pads &amp; Shims", "price": "99.00", "status": "publish",
                "categories": [{"id": 3, "name": "Brakes"}, {"id": 4, "name": "Pads"}],
                "images": [{"src": "https://img.test/1.jpg"}],
            }],
        )

    out = asyncio.run(_with(_woo(handler), lambda c: c.list_products(page=2, per_page=500, search="pad", order="desc")))

    assert seen["per_page"] == "100"
    assert seen["search"] == "pad"
    assert seen["order"] == "desc"
    assert "status" not in seen
    assert out["total"] == 31
    assert out["pages"] == 2
    item = out["items"][0]
    assert item["name"] == "Pads & Shims"
    assert item["categories"] == "Brakes, Pads"
    assert item["category_ids"] == [3, 4]
    assert item["image"] == "https://img.test/1.jpg"


def test_create_product_reports_status():
    def handler(request):
        assert request.method == "POST"
        return httpx.Response(201, json={"id": 77})

    res = asyncio.run(_with(_woo(handler), lambda c: c.create_product({"sku": "A1", "name": "A1"})))
    assert res == {"ok": True, "status": 201, "body": {"id": 77}}
