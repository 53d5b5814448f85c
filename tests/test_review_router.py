class TestReviewRoutes:
    """리뷰 라우터 테스트"""

    def test_create_and_list_reviews(self, client, make_user, make_product, auth_headers):
        user = make_user()
        product = make_product()

        created = client.post(
            "/api/v1/reviews",
            json={"product_id": product.id, "rating": 4, "comment": "Smooth"},
            headers=auth_headers(user),
        )
        listed = client.get(f"/api/v1/reviews/product/{product.id}")

        # 구매 확정 이력이 없으면 리뷰는 남지만 포인트는 없음
        assert created.status_code == 200
        assert created.json()["data"]["points_awarded"] == 0
        body = listed.json()
        assert body["data"]["total_count"] == 1
        assert body["data"]["reviews"][0]["comment"] == "Smooth"
        assert body["meta"]["has_next"] is False

    def test_unknown_product(self, client):
        response = client.get("/api/v1/reviews/product/999")
        assert response.status_code == 404
        assert response.json()["success"] is False
