"""HTTP API: envelopes, auth and the user/team endpoints end to end."""

from datetime import datetime, timedelta

import pytest

from partnerhub.errors import ErrorCode

PASSWORD = "Passw0rd1"


def _register(client, username: str, password: str = PASSWORD):
    return client.post(
        "/user/register",
        json={"username": username, "password": password, "checkPassword": password},
    )


@pytest.fixture
def alice_headers(client, login):
    assert _register(client, "alice").json()["code"] == 0
    return login("alice")


@pytest.fixture
def bob_headers(client, login):
    assert _register(client, "bob_1").json()["code"] == 0
    return login("bob_1")


def _create_team(client, headers, **overrides) -> int:
    body = {"name": "Hackathon", "description": "weekend build", "maxNum": 5}
    body.update(overrides)
    res = client.post("/team/add", json=body, headers=headers)
    assert res.status_code == 200, res.text
    return res.json()["data"]


class TestEnvelope:

    def test_health(self, client):
        res = client.get("/health")
        assert res.status_code == 200
        assert res.json()["status"] == "healthy"

    def test_security_headers(self, client):
        res = client.get("/health")
        assert res.headers["X-Frame-Options"] == "DENY"
        assert res.headers["X-Content-Type-Options"] == "nosniff"

    def test_success_shape(self, client):
        body = _register(client, "alice").json()
        assert set(body) == {"code", "message", "data"}
        assert body["code"] == 0
        assert isinstance(body["data"], int)

    def test_validation_error_shape(self, client):
        res = _register(client, "ab")
        assert res.status_code == 400
        body = res.json()
        assert body["code"] == ErrorCode.PARAMS_ERROR
        assert any("username" in d["field"] for d in body["data"])

    def test_unknown_route_shape(self, client):
        res = client.get("/nope")
        assert res.status_code == 404
        assert res.json() == {
            "code": ErrorCode.NOT_FOUND_ERROR,
            "message": "Not Found",
            "data": None,
        }

    def test_wrong_method_shape(self, client):
        res = client.delete("/user/login")
        assert res.status_code == 405
        body = res.json()
        assert body["code"] == ErrorCode.PARAMS_ERROR
        assert body["data"] is None
        assert "POST" in res.headers["allow"]

    def test_service_error_shape(self, client):
        res = client.post(
            "/user/register",
            json={"username": "alice", "password": PASSWORD, "checkPassword": "Other1234"},
        )
        assert res.status_code == 400
        assert res.json()["code"] == ErrorCode.PASSWORD_ERROR
        assert res.json()["data"] is None


class TestUserEndpoints:

    def test_register_login_current(self, client, alice_headers):
        res = client.get("/user/current", headers=alice_headers)
        assert res.status_code == 200
        user = res.json()["data"]
        assert user["username"] == "alice"
        assert "password" not in user

    def test_login_accepts_snake_and_returns_token(self, client):
        user_id = _register(client, "alice").json()["data"]
        res = client.post("/user/login", json={"username": "alice", "password": PASSWORD})
        data = res.json()["data"]
        assert data["id"] == user_id
        assert data["token"]

    def test_register_accepts_snake_case_body(self, client):
        res = client.post(
            "/user/register",
            json={"username": "alice", "password": PASSWORD, "check_password": PASSWORD},
        )
        assert res.json()["code"] == 0

    def test_duplicate_register(self, client):
        _register(client, "alice")
        res = _register(client, "alice")
        assert res.status_code == 409
        assert res.json()["code"] == ErrorCode.ACCOUNT_EXISTS

    def test_wrong_password(self, client):
        _register(client, "alice")
        res = client.post("/user/login", json={"username": "alice", "password": "Wrong1234"})
        assert res.status_code == 403
        assert res.json()["code"] == ErrorCode.PASSWORD_ERROR

    def test_unknown_account(self, client):
        res = client.post("/user/login", json={"username": "nobody", "password": PASSWORD})
        assert res.status_code == 404
        assert res.json()["code"] == ErrorCode.ACCOUNT_NOT_FOUND

    @pytest.mark.parametrize("username", ["abc", "no such user"])
    def test_unknown_account_with_unusual_username(self, client, username):
        res = client.post("/user/login", json={"username": username, "password": PASSWORD})
        assert res.status_code == 404
        assert res.json()["code"] == ErrorCode.ACCOUNT_NOT_FOUND

    def test_requires_token(self, client):
        res = client.get("/user/current")
        assert res.status_code == 401
        assert res.json()["code"] == ErrorCode.NOT_LOGIN_ERROR

    def test_rejects_bad_token(self, client):
        res = client.get("/user/current", headers={"Authorization": "Bearer nonsense"})
        assert res.status_code == 401

    def test_logout(self, client, alice_headers):
        assert client.post("/user/logout", headers=alice_headers).json()["code"] == 0

    def test_update_profile(self, client, alice_headers):
        user_id = client.get("/user/current", headers=alice_headers).json()["data"]["id"]
        res = client.put(
            "/user",
            json={"id": user_id, "profile": "hello", "tags": ["java", "python"]},
            headers=alice_headers,
        )
        assert res.json()["code"] == 0

        user = client.get("/user/current", headers=alice_headers).json()["data"]
        assert user["profile"] == "hello"
        assert user["tags"] == ["java", "python"]

    def test_search_by_tags(self, client, alice_headers):
        user_id = client.get("/user/current", headers=alice_headers).json()["data"]["id"]
        client.put("/user", json={"id": user_id, "tags": ["java"]}, headers=alice_headers)

        res = client.get("/user/search/tags", params={"tagNameList": ["java"]}, headers=alice_headers)
        assert [u["username"] for u in res.json()["data"]] == ["alice"]

    def test_search_by_tags_without_tags(self, client, alice_headers):
        res = client.get("/user/search/tags", headers=alice_headers)
        assert res.status_code == 400
        assert res.json()["code"] == ErrorCode.PARAMS_NULL_ERROR

    def test_search_by_username(self, client, alice_headers):
        _register(client, "alison")
        res = client.get("/user/search", params={"username": "ali", "pageSize": 10}, headers=alice_headers)
        page = res.json()["data"]
        assert page["total"] == 2
        assert {u["username"] for u in page["records"]} == {"alice", "alison"}

    def test_recommend(self, client, alice_headers):
        page = client.get("/user/recommend", headers=alice_headers).json()["data"]
        assert page["total"] == 1
        assert page["current"] == 1

    def test_status_change_needs_admin(self, client, alice_headers):
        res = client.post("/user/status/0", params={"id": 1}, headers=alice_headers)
        assert res.status_code == 403
        assert res.json()["code"] == ErrorCode.FORBIDDEN_ERROR

    def test_admin_disables_account(self, client, login, user_service):
        admin_id = _register(client, "admin").json()["data"]
        user_service.set_admin(admin_id, True)
        target_id = _register(client, "alice").json()["data"]

        res = client.post("/user/status/0", params={"id": target_id}, headers=login("admin"))
        assert res.json()["code"] == 0

        res = client.post("/user/login", json={"username": "alice", "password": PASSWORD})
        assert res.status_code == 403
        assert res.json()["code"] == ErrorCode.ACCOUNT_LOCKED


class TestTeamEndpoints:

    def test_create_and_get(self, client, alice_headers):
        team_id = _create_team(client, alice_headers, status=2, password="s3cret")

        res = client.get("/team/get", params={"id": team_id}, headers=alice_headers)
        team = res.json()["data"]
        assert team["name"] == "Hackathon"
        assert team["max_num"] == 5
        assert "password" not in team

    def test_create_rejects_bad_max_num(self, client, alice_headers):
        res = client.post("/team/add", json={"name": "Tiny", "maxNum": 1}, headers=alice_headers)
        assert res.status_code == 400
        assert res.json()["code"] == ErrorCode.PARAMS_ERROR

    def test_create_requires_login(self, client):
        res = client.post("/team/add", json={"name": "Hackathon", "maxNum": 5})
        assert res.status_code == 401

    def test_page_enriches_rows(self, client, alice_headers):
        expire = (datetime.utcnow() + timedelta(days=1)).isoformat()
        team_id = _create_team(client, alice_headers, expireTime=expire)

        res = client.get("/team/page", params={"page": 1, "pageSize": 10}, headers=alice_headers)
        page = res.json()["data"]
        assert page["total"] == 1
        [row] = page["records"]
        assert row["id"] == team_id
        assert row["create_user"]["username"] == "alice"
        assert "password" not in row["create_user"]
        assert row["has_join_num"] == 1
        assert row["has_join"] is True

    def test_page_requires_paging(self, client, alice_headers):
        res = client.get("/team/page", headers=alice_headers)
        assert res.status_code == 400

    def test_list_filters(self, client, alice_headers):
        _create_team(client, alice_headers, name="Go meetup")
        chess = _create_team(client, alice_headers, name="Chess", description="boards")

        res = client.get("/team/list", params={"searchText": "chess"}, headers=alice_headers)
        assert [t["id"] for t in res.json()["data"]] == [chess]

    def test_private_listing_forbidden(self, client, alice_headers):
        res = client.get("/team/list", params={"status": 1}, headers=alice_headers)
        assert res.status_code == 403
        assert res.json()["code"] == ErrorCode.NO_AUTH_ERROR

    def test_update(self, client, alice_headers):
        team_id = _create_team(client, alice_headers)
        res = client.put("/team/update", json={"id": team_id, "name": "Renamed"}, headers=alice_headers)
        assert res.json()["data"] is True

        team = client.get("/team/get", params={"id": team_id}, headers=alice_headers).json()["data"]
        assert team["name"] == "Renamed"
        assert team["max_num"] == 5

    def test_membership_flow(self, client, alice_headers, bob_headers):
        team_id = _create_team(client, alice_headers, status=2, password="s3cret")
        bob_id = client.get("/user/current", headers=bob_headers).json()["data"]["id"]

        res = client.post("/team/join", json={"teamId": team_id, "password": "nope"}, headers=bob_headers)
        assert res.status_code == 403

        res = client.post("/team/join", json={"teamId": team_id, "password": "s3cret"}, headers=bob_headers)
        assert res.json()["data"] is True

        res = client.post("/team/join", json={"teamId": team_id, "password": "s3cret"}, headers=bob_headers)
        assert res.status_code == 409
        assert res.json()["code"] == ErrorCode.ALREADY_JOINED

        res = client.post("/team/change", json={"teamId": team_id, "newUserId": bob_id}, headers=alice_headers)
        assert res.json()["data"] is True

        alice_id = client.get("/user/current", headers=alice_headers).json()["data"]["id"]
        res = client.post("/team/kick", json={"teamId": team_id, "userId": alice_id}, headers=bob_headers)
        assert res.json()["data"] is True

        res = client.post("/team/exit", json={"teamId": team_id}, headers=bob_headers)
        assert res.json()["data"] is True

        res = client.get("/team/get", params={"id": team_id}, headers=bob_headers)
        assert res.status_code == 404

    def test_delete(self, client, alice_headers, bob_headers):
        team_id = _create_team(client, alice_headers)

        res = client.delete(f"/team/{team_id}", headers=bob_headers)
        assert res.status_code == 500
        assert res.json()["code"] == ErrorCode.OPERATION_ERROR

        res = client.delete(f"/team/{team_id}", headers=alice_headers)
        assert res.json()["data"] is True
