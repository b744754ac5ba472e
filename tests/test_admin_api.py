"""
Tests for the admin gate and the admin recipe/category endpoints.

Tests cover:
- 401 before 403, 403 for non-admins
- The stored role (not the token's role) deciding access
- Recipe / category CRUD, partial updates and 404 on unknown ids
- Admin user listing
- Unexpected storage failures becoming a 500 without affecting later requests
"""

import time

from fastapi.testclient import TestClient

from conftest import TEST_SECRET, bearer

from tastetrail.api import server
from tastetrail.auth.crud import set_user_role
from tastetrail.auth.security import verify_access_token
from tastetrail.db import connect


class TestAdminGate:
    def test_requires_token(self, client):
        resp = client.post("/admin/recipes", json={"title": "x"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "missing_token"

    def test_invalid_token_is_401_not_403(self, client):
        resp = client.post("/admin/recipes", json={"title": "x"}, headers=bearer("nope"))
        assert resp.status_code == 401
        assert resp.json()["detail"] == "token_invalid"

    def test_user_forbidden(self, client, register):
        token = register("user@example.com")
        resp = client.delete("/admin/recipes/1", headers=bearer(token))
        assert resp.status_code == 403
        assert resp.json()["detail"] == "admin_required"

    def test_demoted_admin_loses_access_with_old_token(self, client, cfg, admin_token):
        assert client.get("/users", headers=bearer(admin_token)).status_code == 200

        with connect(cfg.DB_DSN) as conn:
            set_user_role(conn, email="chef@example.com", role="user")

        # The token still claims admin; the gate must not believe it.
        assert verify_access_token(token=admin_token, secret=TEST_SECRET).role == "admin"
        resp = client.post("/admin/recipes", json={"title": "x"}, headers=bearer(admin_token))
        assert resp.status_code == 403
        assert client.get("/users", headers=bearer(admin_token)).status_code == 403

    def test_promoted_user_gains_access_with_old_token(self, client, cfg, register):
        token = register("rising@example.com")
        with connect(cfg.DB_DSN) as conn:
            set_user_role(conn, email="rising@example.com", role="admin")

        resp = client.post("/admin/recipes", json={"title": "x"}, headers=bearer(token))
        assert resp.status_code == 200


class TestRecipes:
    def test_crud(self, client, admin_token):
        h = bearer(admin_token)

        resp = client.post("/admin/recipes", json={"title": "Soup", "servings": 4}, headers=h)
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        rid = body["recipeId"]

        listed = client.get("/admin/recipes").json()
        assert [r["id"] for r in listed] == [rid]
        created = listed[0]
        assert created["title"] == "Soup"
        assert created["createdAt"] == created["updatedAt"]

        time.sleep(0.01)
        resp = client.put(f"/admin/recipes/{rid}", json={"title": "x"}, headers=h)
        assert resp.status_code == 200
        assert resp.json() == {"success": True}

        updated = client.get("/admin/recipes").json()[0]
        assert updated["title"] == "x"
        assert updated["servings"] == 4
        assert updated["createdAt"] == created["createdAt"]
        assert updated["updatedAt"] > created["updatedAt"]

        resp = client.delete(f"/admin/recipes/{rid}", headers=h)
        assert resp.status_code == 200
        assert client.get("/admin/recipes").json() == []

    def test_listing_is_public(self, client):
        resp = client.get("/admin/recipes")
        assert resp.status_code == 200
        assert resp.json() == []

    def test_unknown_id_is_404(self, client, admin_token):
        h = bearer(admin_token)
        assert client.put("/admin/recipes/999", json={"title": "x"}, headers=h).status_code == 404
        resp = client.delete("/admin/recipes/999", headers=h)
        assert resp.status_code == 404
        assert resp.json()["detail"] == "recipe_not_found"

    def test_non_numeric_id_is_400(self, client, admin_token):
        resp = client.delete("/admin/recipes/abc", headers=bearer(admin_token))
        assert resp.status_code == 400

    def test_out_of_range_id_is_400(self, client, admin_token):
        h = bearer(admin_token)
        resp = client.delete("/admin/recipes/99999999999999999999", headers=h)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "invalid_request"
        assert client.put("/admin/recipes/0", json={"title": "x"}, headers=h).status_code == 400

    def test_body_must_be_object(self, client, admin_token):
        resp = client.post("/admin/recipes", json=["not", "an", "object"], headers=bearer(admin_token))
        assert resp.status_code == 400

    def test_wide_update(self, client, admin_token):
        h = bearer(admin_token)
        rid = client.post("/admin/recipes", json={"title": "Stew"}, headers=h).json()["recipeId"]

        fields = {f"f{i}": i for i in range(70)}
        resp = client.put(f"/admin/recipes/{rid}", json=fields, headers=h)
        assert resp.status_code == 200

        recipe = client.get("/admin/recipes").json()[0]
        assert recipe["title"] == "Stew"
        for k, v in fields.items():
            assert recipe[k] == v


class TestCategories:
    def test_crud(self, client, admin_token):
        h = bearer(admin_token)

        resp = client.post("/admin/categories", json={"name": "Desserts"}, headers=h)
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["message"] == "Category created"
        cid = body["categoryId"]

        resp = client.put(f"/admin/categories/{cid}", json={"icon": "cake"}, headers=h)
        assert resp.json() == {"success": True, "message": "Category updated"}

        cat = client.get("/admin/categories").json()[0]
        assert cat["name"] == "Desserts"
        assert cat["icon"] == "cake"

        resp = client.delete(f"/admin/categories/{cid}", headers=h)
        assert resp.json()["message"] == "Category deleted"
        assert client.get("/admin/categories").json() == []

    def test_user_cannot_create(self, client, register):
        token = register("user@example.com")
        resp = client.post("/admin/categories", json={"name": "x"}, headers=bearer(token))
        assert resp.status_code == 403

    def test_unknown_id_is_404(self, client, admin_token):
        resp = client.put("/admin/categories/42", json={"name": "x"}, headers=bearer(admin_token))
        assert resp.status_code == 404
        assert resp.json()["detail"] == "category_not_found"

    def test_out_of_range_id_is_400(self, client, admin_token):
        h = bearer(admin_token)
        big = 2**63
        assert client.put(f"/admin/categories/{big}", json={"name": "x"}, headers=h).status_code == 400
        assert client.delete(f"/admin/categories/{big}", headers=h).status_code == 400


class TestUserListing:
    def test_admin_sees_users_without_hashes(self, client, admin_token, register):
        register("a@example.com")
        register("b@example.com")

        resp = client.get("/users", headers=bearer(admin_token))

        assert resp.status_code == 200
        users = resp.json()
        assert {u["email"] for u in users} == {"chef@example.com", "a@example.com", "b@example.com"}
        for u in users:
            assert "password" not in u
            assert "password_hash" not in u

    def test_user_forbidden(self, client, register):
        token = register("a@example.com")
        assert client.get("/users", headers=bearer(token)).status_code == 403

    def test_no_token(self, client):
        assert client.get("/users").status_code == 401


def test_storage_failure_is_contained(cfg, monkeypatch):
    def boom(conn, collection):
        raise RuntimeError("storage down")

    app = server.create_app(cfg)
    with TestClient(app, raise_server_exceptions=False) as c:
        monkeypatch.setattr(server, "list_documents", boom)
        resp = c.get("/admin/recipes")
        assert resp.status_code == 500
        assert resp.json() == {"detail": "internal_error"}

        monkeypatch.undo()
        assert c.get("/admin/recipes").status_code == 200
