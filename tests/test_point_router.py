class TestPointRoutes:
    """포인트 라우터 테스트"""

    def test_get_my_balance(self, client, make_user, auth_headers):
        """내 포인트 잔액 조회 테스트"""
        # Given
        user = make_user(points=120)

        # When
        response = client.get("/api/v1/points/balance", headers=auth_headers(user))

        # Then
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["balance"] == 120

    def test_requires_authentication(self, client):
        response = client.get("/api/v1/points/balance")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_001"

    def test_invalid_token(self, client):
        response = client.get(
            "/api/v1/points/balance", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401

    def test_get_my_ledger(self, client, make_user, auth_headers):
        """내 포인트 거래 내역 조회 테스트"""
        user = make_user(points=40)

        response = client.get(
            "/api/v1/points/ledger?limit=10&offset=0", headers=auth_headers(user)
        )

        assert response.status_code == 200
        body = response.json()
        assert body["data"]["balance"] == 40
        assert len(body["data"]["entries"]) == 1
        assert body["data"]["entries"][0]["reason"] == "admin-grant"
        assert body["meta"]["total_count"] == 1
        assert body["meta"]["has_next"] is False

    def test_ledger_rejects_unknown_reason(self, client, make_user, auth_headers):
        user = make_user()
        response = client.get(
            "/api/v1/points/ledger?reason=jackpot", headers=auth_headers(user)
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_001"


class TestAdminPointRoutes:
    """관리자 포인트 라우터 테스트"""

    def test_admin_grant_requires_admin(self, client, make_user, auth_headers):
        user = make_user()
        response = client.post(
            "/api/v1/points/admin/grant",
            json={"user_id": user.id, "amount": 50},
            headers=auth_headers(user),
        )
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "AUTH_002"

    def test_admin_grant_and_reverse(self, client, make_user, auth_headers):
        # Given
        admin = make_user(role="admin")
        user = make_user()

        # When
        grant = client.post(
            "/api/v1/points/admin/grant",
            json={"user_id": user.id, "amount": 50, "idempotency_key": "promo-1"},
            headers=auth_headers(admin),
        )
        replay = client.post(
            "/api/v1/points/admin/grant",
            json={"user_id": user.id, "amount": 50, "idempotency_key": "promo-1"},
            headers=auth_headers(admin),
        )

        # Then
        assert grant.status_code == 200
        assert grant.json()["data"]["new_balance"] == 50
        assert replay.json()["data"]["replayed"] is True

        transaction_id = grant.json()["data"]["transaction_id"]
        reverse = client.post(
            f"/api/v1/points/admin/transactions/{transaction_id}/reverse",
            headers=auth_headers(admin),
        )
        assert reverse.status_code == 200
        assert reverse.json()["data"]["new_balance"] == 0

        integrity = client.get(
            f"/api/v1/points/admin/integrity/{user.id}", headers=auth_headers(admin)
        )
        assert integrity.json()["data"]["is_valid"] is True

    def test_admin_debit_beyond_balance(self, client, make_user, auth_headers):
        admin = make_user(role="admin")
        user = make_user(points=10)

        response = client.post(
            "/api/v1/points/admin/grant",
            json={"user_id": user.id, "amount": -11},
            headers=auth_headers(admin),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "BALANCE_001"

    def test_zero_amount_is_a_validation_error(self, client, make_user, auth_headers):
        admin = make_user(role="admin")
        response = client.post(
            "/api/v1/points/admin/grant",
            json={"user_id": admin.id, "amount": 0},
            headers=auth_headers(admin),
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_001"

    def test_reverse_unknown_transaction(self, client, make_user, auth_headers):
        admin = make_user(role="admin")
        response = client.post(
            "/api/v1/points/admin/transactions/999/reverse", headers=auth_headers(admin)
        )
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND_001"
