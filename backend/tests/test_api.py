"""
HTTP API tests.

Verifies:
- Every business route requires an acting user
- Domain errors map onto 400 / 404 / 409 with a JSON body
- End-to-end flows: shift -> sale -> payments -> close, PO -> receive
"""

from decimal import Decimal

import pytest

from .conftest import BRANCH_ID, actor_headers


D = Decimal


@pytest.fixture
def api(client, db_session, cashier_headers):
    """Small helper around the test client with identity headers."""

    class Api:
        def post(self, url, body=None, headers=None):
            return client.post(url, json=body or {}, headers=headers or cashier_headers)

        def put(self, url, body=None):
            return client.put(url, json=body or {}, headers=cashier_headers)

        def delete(self, url, body=None):
            return client.delete(url, json=body or {}, headers=cashier_headers)

        def get(self, url, **params):
            return client.get(url, query_string=params, headers=cashier_headers)

    return Api()


def open_shift(api, balance="100000"):
    response = api.post("/api/shifts/open", {"branch_id": BRANCH_ID, "starting_balance": balance})
    assert response.status_code == 201, response.get_json()
    return response.get_json()["shift"]


def credit_sale_body(price="100000"):
    return {
        "branch_id": BRANCH_ID,
        "payment_method": "credit",
        "customer_id": "C-1",
        "customer_name": "Toko Maju",
        "credit_due_date": "2026-11-30",
        "lines": [{"product_id": "P1", "quantity": 1, "unit_price": price}],
    }


class TestIdentity:
    @pytest.mark.parametrize(
        "method,url",
        [
            ("post", "/api/shifts/open"),
            ("get", "/api/shifts/active?branch_id=1"),
            ("post", "/api/sales"),
            ("post", "/api/sales/quote"),
            ("get", "/api/payments/sales/1"),
            ("post", "/api/purchase-orders/1/receive"),
        ],
    )
    def test_missing_actor_is_401(self, client, db_session, method, url):
        response = getattr(client, method)(url, json={})
        assert response.status_code == 401

    def test_health_is_public(self, client, db_session):
        response = client.get("/api/health")
        assert response.status_code == 200
        body = response.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["details"]["active_shifts"] == 0


class TestRequestBody:
    @pytest.mark.parametrize(
        "url",
        ["/api/shifts/open", "/api/shifts/close", "/api/sales", "/api/sales/quote", "/api/purchase-orders"],
    )
    @pytest.mark.parametrize("body", [[1, 2], "cash", 42])
    def test_non_object_body_is_400(self, client, db_session, cashier_headers, url, body):
        response = client.post(url, json=body, headers=cashier_headers)
        assert response.status_code == 400
        assert response.get_json()["error"] == "Request body must be a JSON object"

    def test_missing_body_is_validation_error(self, client, db_session, cashier_headers):
        response = client.post("/api/shifts/open", headers=cashier_headers)
        assert response.status_code == 400
        assert response.get_json()["kind"] == "ValidationError"


class TestQuote:
    def test_quote_reference_cart(self, api):
        response = api.post("/api/sales/quote", {
            "lines": [{"product_id": "P1", "quantity": 3, "unit_price": "10000",
                       "discount": {"type": "percentage", "value": 10}}],
            "document_discount": {"type": "percentage", "value": 5},
            "tax_mode": "add",
        })
        assert response.status_code == 200
        breakdown = response.get_json()["breakdown"]
        assert D(breakdown["subtotal"]) == D("27000")
        assert D(breakdown["tax_amount"]) == D("2821.5")
        assert D(breakdown["grand_total"]) == D("28471.5")

    def test_quote_clamps_bad_discounts(self, api):
        response = api.post("/api/sales/quote", {
            "lines": [{"product_id": "P1", "quantity": 1, "unit_price": "1000",
                       "discount": {"type": "percentage", "value": "-20"}}],
            "document_discount": {"type": "nominal", "value": "abc"},
            "shipping_cost": "-5",
        })
        assert response.status_code == 200
        assert D(response.get_json()["breakdown"]["grand_total"]) == D("1000")

    def test_quote_rejects_bad_quantity(self, api):
        response = api.post("/api/sales/quote", {
            "lines": [{"product_id": "P1", "quantity": 1.5, "unit_price": "1000"}],
        })
        assert response.status_code == 400
        assert response.get_json()["kind"] == "ValidationError"


class TestShiftFlow:
    def test_open_sell_close(self, api):
        shift = open_shift(api)
        assert shift["status"] == "active"

        duplicate = api.post("/api/shifts/open", {"branch_id": BRANCH_ID, "starting_balance": "0"})
        assert duplicate.status_code == 409

        sale = api.post("/api/sales", {
            "branch_id": BRANCH_ID,
            "payment_method": "cash",
            "amount_tendered": "50000",
            "lines": [{"product_id": "P1", "quantity": 2, "unit_price": "20000"}],
        })
        assert sale.status_code == 201
        assert sale.get_json()["sale"]["change_given"] == "10000.00"

        preview = api.get("/api/shifts/active/summary", branch_id=BRANCH_ID)
        assert preview.status_code == 200
        assert preview.get_json()["summary"]["expected_cash"] == "140000.00"

        closed = api.post("/api/shifts/close", {"branch_id": BRANCH_ID, "actual_cash_counted": "139500"})
        assert closed.status_code == 200
        body = closed.get_json()["shift"]
        assert body["status"] == "ended"
        assert body["expected_cash"] == "140000.00"
        assert body["cash_difference"] == "-500.00"

        active = api.get("/api/shifts/active", branch_id=BRANCH_ID)
        assert active.get_json()["shift"] is None

        report = api.get(f"/api/shifts/{shift['id']}")
        assert report.status_code == 200
        assert report.get_json()["shift"]["summary"]["sale_count"] == 1

    def test_sale_without_shift_conflicts(self, api):
        response = api.post("/api/sales", credit_sale_body())
        assert response.status_code == 409

    def test_close_requires_count(self, api):
        open_shift(api)
        response = api.post("/api/shifts/close", {"branch_id": BRANCH_ID})
        assert response.status_code == 400

    def test_missing_shift_is_404(self, api):
        assert api.get("/api/shifts/999").status_code == 404


class TestPaymentFlow:
    def test_credit_sale_payments(self, api):
        open_shift(api)
        sale = api.post("/api/sales", credit_sale_body()).get_json()["sale"]
        assert sale["payment_status"] == "unpaid"
        url = f"/api/payments/sales/{sale['id']}"

        recorded = api.post(url, {"amount": "40000", "method": "cash"})
        assert recorded.status_code == 201
        body = recorded.get_json()
        assert body["settlement"]["outstanding_amount"] == "60000.00"
        assert body["settlement"]["payment_status"] == "partially_paid"
        assert body["payment"]["recorded_by_name"] == "Sari"
        payment_id = body["payment"]["id"]

        too_much = api.put(f"/api/payments/{payment_id}", {"amount": "150000"})
        assert too_much.status_code == 400

        edited = api.put(f"/api/payments/{payment_id}", {"amount": "100000"})
        assert edited.status_code == 200
        assert edited.get_json()["settlement"]["payment_status"] == "paid"

        stale = api.delete(f"/api/payments/{payment_id}", {"expected_version": 1})
        assert stale.status_code == 409
        assert stale.get_json()["retry"] is True

        deleted = api.delete(f"/api/payments/{payment_id}")
        assert deleted.status_code == 200
        assert deleted.get_json()["settlement"]["outstanding_amount"] == "100000.00"

        assert api.get(url).get_json()["payments"] == []
        assert len(api.get(url, include_deleted="true").get_json()["payments"]) == 1

        outstanding = api.get("/api/sales/outstanding", branch_id=BRANCH_ID).get_json()["sales"]
        assert [row["id"] for row in outstanding] == [sale["id"]]
        assert outstanding[0]["display_status"] == "unpaid"

    def test_zero_payment_rejected(self, api):
        open_shift(api)
        sale = api.post("/api/sales", credit_sale_body()).get_json()["sale"]
        response = api.post(f"/api/payments/sales/{sale['id']}", {"amount": "0", "method": "cash"})
        assert response.status_code == 400

    @pytest.mark.parametrize("method", [5, ["cash"], "cheque"])
    def test_bad_method_rejected(self, api, method):
        open_shift(api)
        sale = api.post("/api/sales", credit_sale_body()).get_json()["sale"]
        response = api.post(f"/api/payments/sales/{sale['id']}", {"amount": "1000", "method": method})
        assert response.status_code == 400
        assert "method" in response.get_json()["error"]

    def test_edit_rejects_bad_method(self, api):
        open_shift(api)
        sale = api.post("/api/sales", credit_sale_body()).get_json()["sale"]
        payment = api.post(f"/api/payments/sales/{sale['id']}", {"amount": "1000", "method": "CARD"}).get_json()["payment"]
        assert payment["method"] == "card"

        response = api.put(f"/api/payments/{payment['id']}", {"amount": "1000", "method": 7})
        assert response.status_code == 400
        kept = api.put(f"/api/payments/{payment['id']}", {"amount": "2000"})
        assert kept.status_code == 200
        assert kept.get_json()["payment"]["method"] == "card"

    def test_unknown_collection(self, api):
        assert api.get("/api/payments/invoices/1").status_code == 400

    def test_return_blocks_payments(self, api):
        open_shift(api)
        sale = api.post("/api/sales", credit_sale_body()).get_json()["sale"]
        returned = api.post(f"/api/sales/{sale['id']}/return", {"reason": "damaged"})
        assert returned.status_code == 200
        assert returned.get_json()["sale"]["status"] == "returned"

        again = api.post(f"/api/sales/{sale['id']}/return")
        assert again.status_code == 409
        payment = api.post(f"/api/payments/sales/{sale['id']}", {"amount": "1", "method": "cash"})
        assert payment.status_code == 409


class TestPurchaseOrderFlow:
    def test_create_order_receive(self, api, other_cashier):
        created = api.post("/api/purchase-orders", {
            "branch_id": BRANCH_ID,
            "supplier_id": "SUP-1",
            "payment_terms": "credit",
            "payment_due_date": "2026-12-01",
            "lines": [{"product_id": "SKU-1", "quantity": 50, "unit_price": "2000"}],
        })
        assert created.status_code == 201
        po = created.get_json()["purchase_order"]
        assert po["status"] == "draft"
        line_id = po["lines"][0]["id"]

        early = api.post(f"/api/purchase-orders/{po['id']}/receive",
                         {"receipts": [{"line_id": line_id, "quantity": 1}]})
        assert early.status_code == 409

        assert api.post(f"/api/purchase-orders/{po['id']}/order").status_code == 200

        over = api.post(f"/api/purchase-orders/{po['id']}/receive",
                        {"receipts": [{"line_id": line_id, "quantity": 51}]})
        assert over.status_code == 400
        assert over.get_json()["details"]["lines"][0]["attempted_quantity"] == 51

        partial = api.post(f"/api/purchase-orders/{po['id']}/receive",
                           {"receipts": [{"line_id": line_id, "quantity": 20}]},
                           headers=actor_headers(other_cashier))
        assert partial.status_code == 200
        body = partial.get_json()["purchase_order"]
        assert body["status"] == "partially_received"
        assert body["receiving"]["remaining_quantity"] == 30

        paid = api.post(f"/api/payments/purchase-orders/{po['id']}", {"amount": "25000", "method": "transfer"})
        assert paid.status_code == 201
        assert paid.get_json()["settlement"]["outstanding_amount"] == "75000.00"

        full = api.post(f"/api/purchase-orders/{po['id']}/receive",
                        {"receipts": [{"product_id": "SKU-1", "quantity": 30}]})
        assert full.get_json()["purchase_order"]["status"] == "fully_received"

        done = api.post(f"/api/purchase-orders/{po['id']}/receive",
                        {"receipts": [{"product_id": "SKU-1", "quantity": 1}]})
        assert done.status_code == 409
        assert api.post(f"/api/purchase-orders/{po['id']}/cancel").status_code == 409

        listed = api.get("/api/purchase-orders", status="fully_received").get_json()["purchase_orders"]
        assert [row["id"] for row in listed] == [po["id"]]

    def test_missing_order_is_404(self, api):
        response = api.post("/api/purchase-orders/404/receive", {"receipts": [{"product_id": "X", "quantity": 1}]})
        assert response.status_code == 404
