def test_save_creates_then_updates_snapshot(client, auth_headers, fake_client):
    first = client.post(
        "/api/save-data",
        json={"type": "vocabulary", "data": [{"korean": "물"}]},
        headers=auth_headers,
    )
    second = client.post(
        "/api/save-data",
        json={"type": "vocabulary", "data": [{"korean": "물"}, {"korean": "밥"}]},
        headers=auth_headers,
    )

    assert first.json() == {
        "success": True,
        "message": "Data type 'vocabulary' saved successfully",
        "created": True,
    }
    assert second.json()["created"] is False
    assert len(fake_client.documents("user_data")) == 1

    loaded = client.get("/api/load-data", params={"type": "vocabulary"}, headers=auth_headers)

    assert loaded.status_code == 200
    body = loaded.json()
    assert body["data"] == [{"korean": "물"}, {"korean": "밥"}]
    assert body["metadata"]["type"] == "vocabulary"
    assert body["metadata"]["data_size"] == len('[{"korean":"물"},{"korean":"밥"}]')
    assert body["metadata"]["last_updated"] is not None


def test_snapshots_are_scoped_per_user(client, auth_headers, register_user):
    client.post("/api/save-data", json={"type": "settings", "data": {"a": 1}}, headers=auth_headers)
    other = register_user(client, "jisoo")
    client.cookies.clear()

    response = client.get(
        "/api/load-data",
        params={"type": "settings"},
        headers={"Authorization": f"Bearer {other['token']}"},
    )

    assert response.status_code == 404


def test_save_requires_data(client, auth_headers):
    missing_type = client.post("/api/save-data", json={"data": [1]}, headers=auth_headers)
    null_data = client.post("/api/save-data", json={"type": "x", "data": None}, headers=auth_headers)

    assert missing_type.status_code == 422
    assert null_data.status_code == 400


def test_load_requires_type(client, auth_headers):
    assert client.get("/api/load-data", headers=auth_headers).status_code == 422
