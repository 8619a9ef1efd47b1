from shopdesk.domain.models import Product

def _item(**overrides):
    item = {
        "title": "Feeding Bottle",
        "buyPrice": 120,
        "sellPrice": 180,
        "stock": 25,
        "category": "Feeding",
        "brand": "Go Baby",
    }
    item.update(overrides)
    return item

class TestPartialMode:
    """Valid items are inserted, invalid ones reported per index"""

    def test_multi_status_with_missing_field(self, client, session_factory):
        invalid = _item()
        del invalid["category"]
        payload = {"products": [_item(), invalid, _item(sku="FB-1")]}

        response = client.post("/products/bulk", json=payload)

        assert response.status_code == 207
        body = response.json()
        assert body["success"] is False
        assert body["createdCount"] == 2
        assert body["failedCount"] == 1
        assert body["message"] == "Bulk create completed: 2 created, 1 failed"
        first, second, third = body["results"]
        assert first["success"] is True
        assert first["product"]["sku"] == "SKU-000001"
        assert first["product"]["minStock"] == 5
        assert second == {
            "index": 1,
            "success": False,
            "error": "Missing required fields or invalid numbers",
            "missingFields": ["category"],
            "invalidNumbers": [],
        }
        assert third["product"]["sku"] == "FB-1"
        with session_factory() as s:
            assert s.query(Product).count() == 2

    def test_all_created(self, client):
        response = client.post("/products/bulk", json={"products": [_item(), _item(title="Bib")]})

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "All products created successfully"
        assert [r["product"]["sku"] for r in body["results"]] == ["SKU-000001", "SKU-000002"]

    def test_blank_values_count_as_missing(self, client):
        response = client.post("/products/bulk", json={"products": [_item(title="", brand=None)]})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "No valid products to insert"
        assert body["results"][0]["missingFields"] == ["title", "brand"]

    def test_invalid_numbers(self, client):
        response = client.post(
            "/products/bulk",
            json={"products": [_item(buyPrice="abc", stock=-1), _item(stock=2.5), _item(sellPrice="199.5", stock="7")]},
        )

        results = response.json()["results"]
        assert results[0]["invalidNumbers"] == ["buyPrice", "stock"]
        assert results[1]["invalidNumbers"] == ["stock"]
        assert results[2]["success"] is True
        assert results[2]["product"]["sellPrice"] == 199.5
        assert results[2]["product"]["stock"] == 7

    def test_duplicate_sku_in_request(self, client):
        response = client.post("/products/bulk", json={"products": [_item(sku="DUP-1"), _item(sku="DUP-1")]})

        assert response.status_code == 207
        results = response.json()["results"]
        assert results[0]["success"] is True
        assert results[1] == {"index": 1, "success": False, "error": "Duplicate SKU in request: DUP-1"}

    def test_sku_already_in_catalogue(self, client, make_product):
        make_product(sku="EXIST-1")

        response = client.post("/products/bulk", json={"products": [_item(sku="EXIST-1")]})

        assert response.status_code == 400
        assert response.json()["results"][0]["error"] == "SKU already exists: EXIST-1"

    def test_generated_skus_skip_used_numbers(self, client, make_product):
        make_product(sku="SKU-000003")
        make_product(sku="SKU-000007")
        make_product(sku="SKU-LEGACY")

        response = client.post(
            "/products/bulk",
            json={"products": [_item(), _item(sku="SKU-000008"), _item()]},
        )

        skus = [r["product"]["sku"] for r in response.json()["results"]]
        assert skus == ["SKU-000009", "SKU-000008", "SKU-000010"]

    def test_custom_prefix(self, client):
        response = client.post("/products/bulk", params={"skuPrefix": "GB-"}, json={"products": [_item()]})

        assert response.json()["results"][0]["product"]["sku"] == "GB-000001"

class TestFailfastMode:
    """Any problem refuses the whole batch"""

    def test_validation_failure_inserts_nothing(self, client, session_factory):
        invalid = _item()
        del invalid["category"]

        response = client.post("/products/bulk", params={"mode": "failfast"}, json={"products": [_item(), invalid]})

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Validation failed",
            "invalid": [{"index": 1, "missingFields": ["category"], "invalidNumbers": []}],
        }
        with session_factory() as s:
            assert s.query(Product).count() == 0

    def test_duplicates_in_request(self, client):
        response = client.post(
            "/products/bulk",
            params={"mode": "failFast"},
            json={"products": [_item(sku="A-1"), _item(sku="A-1")]},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Duplicate SKUs in request"
        assert response.json()["invalid"] == [{"index": 1, "error": "Duplicate SKU in request: A-1"}]

    def test_existing_skus(self, client, make_product, session_factory):
        make_product(sku="A-1")

        response = client.post(
            "/products/bulk",
            params={"mode": "failfast"},
            json={"products": [_item(), _item(sku="A-1")]},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Some SKUs already exist"
        with session_factory() as s:
            assert s.query(Product).count() == 1

    def test_clean_batch_is_inserted(self, client):
        response = client.post("/products/bulk", params={"mode": "failfast"}, json={"products": [_item(), _item()]})

        assert response.status_code == 201
        assert response.json()["createdCount"] == 2

class TestRequestShape:
    def test_products_must_be_a_non_empty_list(self, client):
        for body in ({}, {"products": []}, {"products": "nope"}):
            response = client.post("/products/bulk", json=body)
            assert response.status_code == 400
            assert response.json()["error"] == 'Body must include non-empty "products" array'

    def test_unknown_mode(self, client):
        response = client.post("/products/bulk", params={"mode": "sometimes"}, json={"products": [_item()]})
        assert response.status_code == 400
