class TestContestRoutes:
    """대회 라우터 테스트"""

    def test_contest_submit_and_publish(self, client, make_user, make_contest, auth_headers):
        admin = make_user(role="admin")
        user = make_user(points=10)
        contest = make_contest(points_per_answer=10, reward_points=50)

        submitted = client.post(
            f"/api/v1/contests/{contest.id}/submit",
            json={"answer": "Darjeeling"},
            headers=auth_headers(user),
        )
        published = client.post(
            f"/api/v1/contests/admin/{contest.id}/publish",
            json={"correct_answer": "darjeeling"},
            headers=auth_headers(admin),
        )

        assert submitted.json()["data"]["new_balance"] == 0
        assert published.json()["data"]["correct_count"] == 1
        balance = client.get("/api/v1/points/balance", headers=auth_headers(user))
        assert balance.json()["data"]["balance"] == 50
