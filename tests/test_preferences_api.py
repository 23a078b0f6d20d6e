"""Tests for /preferences endpoints."""

from sqlite_explorer.database import DEFAULT_PREFERENCES


class TestPreferences:
    """Tests for setting and reading preferences."""

    def test_empty(self, client):
        response = client.get("/preferences")

        assert response.status_code == 200
        assert response.json() == {"preferences": {}}

    def test_set_and_get(self, client):
        response = client.post("/preferences", json={"key": "editor.fontSize", "value": 16})

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert client.get("/preferences").json()["preferences"] == {"editor.fontSize": "16"}

    def test_set_same_value_twice(self, client):
        client.post("/preferences", json={"key": "theme.mode", "value": "dark"})
        client.post("/preferences", json={"key": "theme.mode", "value": "dark"})

        assert client.get("/preferences").json()["preferences"] == {"theme.mode": "dark"}

    def test_boolean_values_are_lowercase(self, client):
        client.post("/preferences", json={"key": "editor.wordWrap", "value": False})

        assert client.get("/preferences").json()["preferences"]["editor.wordWrap"] == "false"

    def test_set_requires_key_and_value(self, client):
        assert client.post("/preferences", json={"key": "a"}).status_code == 400
        assert client.post("/preferences", json={"value": "b"}).status_code == 400

    def test_bulk(self, client):
        response = client.post(
            "/preferences/bulk",
            json={"theme.mode": "dark", "editor.tabSize": 4, "other": "x"},
        )

        assert response.status_code == 200
        assert client.get("/preferences/theme").json()["preferences"] == {"theme.mode": "dark"}
        assert client.get("/preferences/editor").json()["preferences"] == {"editor.tabSize": "4"}

    def test_bulk_rejects_empty(self, client):
        assert client.post("/preferences/bulk", json={}).status_code == 400

    def test_initialize(self, client):
        client.post("/preferences", json={"key": "theme.mode", "value": "dark"})

        response = client.post("/preferences/initialize")

        assert response.status_code == 200
        preferences = client.get("/preferences").json()["preferences"]
        assert set(preferences) == set(DEFAULT_PREFERENCES)
        assert preferences["theme.mode"] == "dark"

    def test_delete(self, client):
        client.post("/preferences", json={"key": "theme.mode", "value": "dark"})

        response = client.delete("/preferences/theme.mode")

        assert response.status_code == 200
        assert client.get("/preferences").json()["preferences"] == {}
