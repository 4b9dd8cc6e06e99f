import pytest

WORDS = [
    {"korean": "공항", "translation": "sân bay", "pronunciation": "gonghang"},
    {"korean": "여권", "vietnamese": "hộ chiếu", "pronunciation": "yeogwon"},
]


def _create(client, headers, **overrides):
    payload = {"title": "여행 단어", "category": "Du lịch", "words": WORDS, **overrides}
    response = client.post("/api/wordlists/", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_and_list_word_lists(client, auth_headers):
    created = _create(client, auth_headers)

    assert created["total_words"] == 2
    assert created["words"][1]["translation"] == "hộ chiếu"
    assert created["words"][0]["progress"]["mastery_level"] == 0.0

    listed = client.get("/api/wordlists/", headers=auth_headers).json()
    assert [item["id"] for item in listed] == [created["id"]]


def test_progress_update_applies_review(client, auth_headers):
    created = _create(client, auth_headers)
    word_id = created["words"][0]["id"]

    response = client.put(
        f"/api/wordlists/{created['id']}/words/{word_id}/progress",
        json={"isCorrect": True, "gameType": "flashcard"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    progress = response.json()["progress"]
    assert progress["mastery_level"] == pytest.approx(0.2)
    assert progress["correct_count"] == 1
    assert progress["last_reviewed"] is not None

    wrong = client.put(
        f"/api/wordlists/{created['id']}/words/{word_id}/progress",
        json={"is_correct": False},
        headers=auth_headers,
    ).json()["progress"]
    assert wrong["mastery_level"] == pytest.approx(0.1)
    assert wrong["incorrect_count"] == 1


def test_progress_update_unknown_word_is_404_without_write(client, auth_headers, fake_client):
    created = _create(client, auth_headers)
    fake_client.writes.clear()

    response = client.put(
        f"/api/wordlists/{created['id']}/words/w_missing/progress",
        json={"isCorrect": True},
        headers=auth_headers,
    )

    assert response.status_code == 404
    assert response.json()["detail"] == "Word not found"
    assert [w for w in fake_client.writes if w[1] == "word_lists"] == []


def test_progress_update_unknown_list_is_404(client, auth_headers):
    response = client.put(
        "/api/wordlists/wl_missing/words/w_missing/progress",
        json={"isCorrect": True},
        headers=auth_headers,
    )

    assert response.status_code == 404
    assert response.json()["detail"] == "Word list not found"


def test_progress_update_requires_is_correct(client, auth_headers):
    created = _create(client, auth_headers)
    word_id = created["words"][0]["id"]

    response = client.put(
        f"/api/wordlists/{created['id']}/words/{word_id}/progress",
        json={"gameType": "quiz"},
        headers=auth_headers,
    )

    assert response.status_code == 422


def test_other_users_cannot_touch_a_list(client, auth_headers, register_user):
    created = _create(client, auth_headers)
    other = register_user(client, "jisoo")
    client.cookies.clear()
    other_headers = {"Authorization": f"Bearer {other['token']}"}

    assert client.get(f"/api/wordlists/{created['id']}", headers=other_headers).status_code == 404
    assert client.delete(f"/api/wordlists/{created['id']}", headers=other_headers).status_code == 404
    word_id = created["words"][0]["id"]
    review = client.put(
        f"/api/wordlists/{created['id']}/words/{word_id}/progress",
        json={"isCorrect": True},
        headers=other_headers,
    )
    assert review.status_code == 404


def test_update_keeps_progress_of_existing_words(client, auth_headers):
    created = _create(client, auth_headers)
    kept = created["words"][0]
    client.put(
        f"/api/wordlists/{created['id']}/words/{kept['id']}/progress",
        json={"isCorrect": True},
        headers=auth_headers,
    )

    response = client.put(
        f"/api/wordlists/{created['id']}",
        json={
            "title": "공항 단어",
            "words": [{"id": kept["id"], "korean": "공항", "translation": "sân bay"}],
        },
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "공항 단어"
    assert body["total_words"] == 1
    assert body["words"][0]["progress"]["correct_count"] == 1


def test_delete_word_list(client, auth_headers):
    created = _create(client, auth_headers)

    assert client.delete(f"/api/wordlists/{created['id']}", headers=auth_headers).status_code == 200
    assert client.get(f"/api/wordlists/{created['id']}", headers=auth_headers).status_code == 404


def test_public_lists_need_no_session(client, auth_headers):
    _create(client, auth_headers, title="공개", isPublic=True)
    _create(client, auth_headers, title="비공개")

    response = client.get("/api/wordlists/public")

    assert response.status_code == 200
    body = response.json()
    assert [item["title"] for item in body] == ["공개"]
    assert body[0]["author_username"] == "minji"


def test_review_queue_lists_due_words(client, auth_headers):
    created = _create(client, auth_headers)
    reviewed = created["words"][0]
    client.put(
        f"/api/wordlists/{created['id']}/words/{reviewed['id']}/progress",
        json={"isCorrect": True},
        headers=auth_headers,
    )

    due = client.get("/api/stats/review", headers=auth_headers).json()

    assert [word["korean"] for word in due] == ["여권"]
    assert due[0]["list_id"] == created["id"]
    assert due[0]["list_title"] == "여행 단어"


def test_update_ignores_client_supplied_progress(client, auth_headers):
    created = _create(client, auth_headers)
    kept = created["words"][0]
    forged = {
        "correct_count": 50,
        "mastery_level": 0.0,
        "next_review": "2099-01-01T00:00:00+00:00",
    }

    response = client.put(
        f"/api/wordlists/{created['id']}",
        json={
            "words": [
                {"id": kept["id"], "korean": "공항", "translation": "sân bay", "progress": forged},
                {"korean": "비자", "translation": "thị thực", "progress": forged},
            ]
        },
        headers=auth_headers,
    )

    assert response.status_code == 200
    stored_kept, added = response.json()["words"]
    assert stored_kept["progress"] == kept["progress"]
    assert added["progress"]["correct_count"] == 0
    assert not added["progress"]["next_review"].startswith("2099")

    due = client.get("/api/stats/review", headers=auth_headers).json()
    assert {word["korean"] for word in due} == {"공항", "비자"}


def test_review_queue_reads_stored_timestamps_without_timezone(client, auth_headers, fake_client):
    created = _create(client, auth_headers)
    document = fake_client.documents("word_lists")[created["id"]]
    document["words"][0]["progress"]["next_review"] = "2020-01-01T00:00:00"
    document["words"][1]["progress"]["next_review"] = "2999-01-01T00:00:00"

    response = client.get("/api/stats/review", headers=auth_headers)

    assert response.status_code == 200
    due = response.json()
    assert [word["korean"] for word in due] == ["공항"]
    assert due[0]["progress"]["next_review"].startswith("2020-01-01T00:00:00")
