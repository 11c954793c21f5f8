import pytest

API = "/api/v1"


@pytest.fixture
def customer_body() -> dict[str, str]:
    return {
        "customer_name": "Umbrella",
        "customer_class": "ENTERPRISE",
        "reference_number": "UMB-1",
        "status": "ACT",
    }


@pytest.mark.asyncio
class TestCustomerEndpoints:

    async def test_create_then_get(self, client, customer_body):
        created = await client.post(f"{API}/customers", json=customer_body)

        assert created.status_code == 201
        body = created.json()
        assert body["reference_number"] == "UMB-1"
        assert isinstance(body["customer_id"], int)
        assert created.headers["X-Request-ID"]

        fetched = await client.get(f"{API}/customers/{body['customer_id']}")
        assert fetched.status_code == 200
        assert fetched.json()["customer_name"] == "Umbrella"

    async def test_duplicate_reference_is_409_payload(self, client, customer_body):
        """
        Behavior:
                - Create the same reference number twice.
                - Expect 409 with the taxonomy payload, the request id echoed in
                  both the header and the body.
        """
        await client.post(f"{API}/customers", json=customer_body)

        response = await client.post(
            f"{API}/customers",
            json={**customer_body, "customer_name": "Umbrella 2"},
            headers={"X-Request-ID": "dup-req-1"},
        )

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "UNIQUE_CONSTRAINT_VIOLATION"
        assert error["statusCode"] == 409
        assert error["category"] == "CLIENT_ERROR"
        assert error["requestId"] == "dup-req-1"
        assert error["metadata"]["operation"] == "create customer"
        assert "stack" not in error
        assert response.headers["X-Request-ID"] == "dup-req-1"

    async def test_missing_customer_is_404(self, client):
        response = await client.get(f"{API}/customers/4040")

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "RESOURCE_NOT_FOUND"
        assert error["metadata"] == {"resource": "customer", "identifier": 4040}

    async def test_invalid_body_is_422(self, client, customer_body):
        response = await client.post(f"{API}/customers", json={**customer_body, "customer_name": ""})

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["metadata"]["field"] == "customer_name"

    async def test_update_and_delete(self, client, customer_body):
        customer_id = (await client.post(f"{API}/customers", json=customer_body)).json()["customer_id"]

        updated = await client.put(f"{API}/customers/{customer_id}", json={"status": "INACTIVE"})
        assert updated.status_code == 200
        assert updated.json()["status"] == "INACTIVE"

        reactivated = await client.put(f"{API}/customers/{customer_id}", json={"status": "ACT"})
        assert reactivated.json()["status"] == "ACT"

        deleted = await client.delete(f"{API}/customers/{customer_id}")
        assert deleted.status_code == 200
        assert deleted.json()["status"] == "INACTIVE"

        fetched = await client.get(f"{API}/customers/{customer_id}")
        assert fetched.status_code == 200
        assert fetched.json()["status"] == "INACTIVE"

        assert (await client.delete(f"{API}/customers/999999")).status_code == 404

    async def test_update_missing_customer_is_404(self, client):
        response = await client.put(f"{API}/customers/777", json={"status": "INACTIVE"})

        assert response.status_code == 404

    async def test_list_paginates(self, client, customer_body):
        for idx in range(3):
            await client.post(
                f"{API}/customers",
                json={**customer_body, "customer_name": f"C{idx}", "reference_number": f"REF-{idx}"},
            )

        response = await client.get(f"{API}/customers", params={"limit": 2, "order_by": "-customer_name"})

        assert response.status_code == 200
        body = response.json()
        assert [c["customer_name"] for c in body["data"]] == ["C2", "C1"]
        assert body["pagination"] == {
            "page": 1,
            "limit": 2,
            "totalCount": 3,
            "totalPages": 2,
            "hasNext": True,
            "hasPrev": False,
        }

    async def test_list_rejects_page_zero(self, client):
        response = await client.get(f"{API}/customers", params={"page": 0})

        assert response.status_code == 422
        assert response.json()["error"]["metadata"]["field"] == "page"


@pytest.mark.asyncio
class TestUserProjectionEndpoints:

    async def test_users_by_account(self, client, committed_directory):
        response = await client.get(f"{API}/accounts/{committed_directory.zeta}/users/header")

        assert response.status_code == 200
        assert [row["last_name"] for row in response.json()] == ["Adams", "Smith"]

    async def test_users_by_customer_detail(self, client, committed_directory):
        response = await client.get(f"{API}/customers/{committed_directory.acme}/users/detail")

        assert response.status_code == 200
        rows = response.json()
        jane = next(row for row in rows if row["first_name"] == "Jane")
        assert [a["account_name"] for a in jane["accounts"]] == ["Alpha Sales", "Zeta Ops"]

    async def test_unknown_tier_is_422(self, client):
        response = await client.get(f"{API}/customers/1/users/everything")

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
class TestBoundary:

    async def test_health(self, client):
        response = await client.get(f"{API}/health")

        assert response.status_code == 200
        assert response.json()["healthy"] is True

    async def test_unknown_route_uses_error_payload(self, client):
        response = await client.get(f"{API}/nowhere")

        assert response.status_code == 404
        assert response.json()["error"]["statusCode"] == 404

    async def test_unexpected_exception_is_generic_500(self, app, client):
        """
        Behavior:
                - A route raising a plain exception.
                - Expect 500 UnknownError with the generic message (production settings).
        """
        @app.get("/boom")
        async def boom():
            raise RuntimeError("secret internals at 10.0.0.1")

        response = await client.get("/boom")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "INTERNAL_SERVER_ERROR"
        assert error["message"] == "Internal server error"
        assert "10.0.0.1" not in response.text
