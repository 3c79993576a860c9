from tests.conftest import USER1_HEADERS, USER2_HEADERS, auth_headers


def test_paris_trip_scenario(client, create_offer):
    resp = create_offer(title="Paris trip", content={"days": 3}, status="draft")
    offer = resp.json()
    f0 = resp.headers["ETag"]
    assert offer["etag"] == f0
    assert offer["version"] == 1
    assert offer["versionInfo"] == {
        "current": 1,
        "total": 1,
        "isLatest": True,
        "createdAt": offer["createdAt"],
        "updatedAt": offer["updatedAt"],
        "lastModifiedBy": "user_1",
        "hasUnpublishedChanges": False,
    }

    resp = client.put(
        f"/offers/{offer['id']}",
        json={"title": "Paris trip v2", "content": {"days": 4}, "createVersion": True},
        headers={**USER1_HEADERS, "If-Match": f0},
    )
    assert resp.status_code == 200
    updated = resp.json()
    assert updated["currentVersion"] == 2
    assert updated["totalVersions"] == 2
    assert resp.headers["ETag"] != f0

    resp = client.post(f"/offers/{offer['id']}/versions/1/switch", headers=USER1_HEADERS)
    assert resp.status_code == 200
    switched = resp.json()
    assert switched["content"] == {"days": 3}
    assert switched["title"] == "Paris trip"
    assert switched["currentVersion"] == 1
    assert resp.headers["ETag"] == f0


def test_requests_without_token_are_rejected(client):
    resp = client.get("/offers")
    assert resp.status_code == 401
    assert resp.json()["error"] == "unauthorized"
    assert resp.headers["WWW-Authenticate"] == "Bearer"

    resp = client.get("/offers", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401


def test_jwt_from_token_endpoint_is_accepted(client):
    headers = auth_headers(client, "bob")
    resp = client.post("/offers", json={"title": "From JWT"}, headers=headers)
    assert resp.status_code == 201
    assert resp.json()["ownerId"] == "user_2"

    resp = client.post("/auth/token", json={"username": "mallory"})
    assert resp.status_code == 401


def test_create_validation_errors(client):
    resp = client.post("/offers", json={"title": ""}, headers=USER1_HEADERS)
    assert resp.status_code == 400
    assert resp.json()["error"] == "validation_error"

    resp = client.post("/offers", json={"title": "Trip", "content": None}, headers=USER1_HEADERS)
    assert resp.status_code == 400

    resp = client.post("/offers", json={"title": "Trip", "content": [1]}, headers=USER1_HEADERS)
    assert resp.status_code == 400

    resp = client.post("/offers", json={"title": "Trip", "status": "gone"}, headers=USER1_HEADERS)
    assert resp.status_code == 400


def test_get_supports_conditional_requests(client, create_offer):
    offer = create_offer().json()

    resp = client.get(f"/offers/{offer['id']}", headers=USER1_HEADERS)
    assert resp.status_code == 200
    etag = resp.headers["ETag"]

    resp = client.get(f"/offers/{offer['id']}", headers={**USER1_HEADERS, "If-None-Match": etag})
    assert resp.status_code == 304
    assert resp.headers["ETag"] == etag

    resp = client.get(f"/offers/{offer['id']}", headers={**USER1_HEADERS, "If-None-Match": '"00000000"'})
    assert resp.status_code == 200


def test_offers_are_private_to_owner(client, create_offer):
    offer = create_offer().json()

    resp = client.get(f"/offers/{offer['id']}", headers=USER2_HEADERS)
    assert resp.status_code == 404
    assert resp.json() == {"error": "not_found", "message": "Offer not found"}

    resp = client.get("/offers/does-not-exist", headers=USER1_HEADERS)
    assert resp.status_code == 404
    assert resp.json()["message"] == "Offer not found"


def test_update_requires_if_match(client, create_offer):
    offer = create_offer().json()

    resp = client.put(f"/offers/{offer['id']}", json={"title": "New"}, headers=USER1_HEADERS)
    assert resp.status_code == 412
    assert resp.json()["error"] == "precondition_failed"


def test_update_with_stale_etag_returns_conflict(client, create_offer):
    resp = create_offer()
    offer = resp.json()
    f0 = resp.headers["ETag"]

    resp = client.put(
        f"/offers/{offer['id']}",
        json={"title": "First edit"},
        headers={**USER1_HEADERS, "If-Match": f0},
    )
    assert resp.status_code == 200
    f1 = resp.headers["ETag"]
    assert f1 != f0

    resp = client.put(
        f"/offers/{offer['id']}",
        json={"title": "Second edit"},
        headers={**USER1_HEADERS, "If-Match": f0},
    )
    assert resp.status_code == 409
    body = resp.json()
    assert body["error"] == "conflict"
    assert body["conflictDetails"]["currentETag"] == f1
    assert body["conflictDetails"]["currentVersion"] == 1
    assert body["conflictDetails"]["yourVersion"] == "outdated"
    assert "lastModifiedAt" in body["conflictDetails"]
    assert [o["action"] for o in body["resolutionOptions"]] == [
        "overwrite", "create_version", "view_changes"
    ]
    assert resp.headers["ETag"] == f1

    resp = client.get(f"/offers/{offer['id']}", headers=USER1_HEADERS)
    assert resp.json()["title"] == "First edit"


def test_weak_and_unquoted_if_match_are_accepted(client, create_offer):
    resp = create_offer()
    offer = resp.json()
    bare = resp.headers["ETag"].strip('"')

    resp = client.put(
        f"/offers/{offer['id']}",
        json={"title": "Edited"},
        headers={**USER1_HEADERS, "If-Match": f"W/\"{bare}\""},
    )
    assert resp.status_code == 200

    resp = client.put(
        f"/offers/{offer['id']}",
        json={"title": "Edited again"},
        headers={**USER1_HEADERS, "If-Match": resp.headers["ETag"].strip('"')},
    )
    assert resp.status_code == 200


def test_list_offers(client, create_offer):
    create_offer(title="Bravo")
    create_offer(title="Alpha", status="archived")
    create_offer(title="Foreign", headers=USER2_HEADERS)

    resp = client.get("/offers?orderBy=title&order=asc", headers=USER1_HEADERS)
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 2
    assert body["limit"] == 50
    assert body["offset"] == 0
    assert [o["title"] for o in body["offers"]] == ["Alpha", "Bravo"]
    assert set(body["offers"][0]) == {
        "id", "title", "status", "version", "createdAt", "updatedAt", "hasUnpublishedChanges"
    }

    etag = resp.headers["ETag"]
    resp = client.get(
        "/offers?orderBy=title&order=asc",
        headers={**USER1_HEADERS, "If-None-Match": etag},
    )
    assert resp.status_code == 304

    resp = client.get("/offers?status=archived&limit=abc", headers=USER1_HEADERS)
    assert [o["title"] for o in resp.json()["offers"]] == ["Alpha"]
    assert resp.json()["limit"] == 50

    resp = client.get("/offers?orderBy=owner", headers=USER1_HEADERS)
    assert resp.status_code == 400


def test_version_endpoints(client, create_offer):
    offer = create_offer(title="Trip", content={"days": 3}).json()
    offer_id = offer["id"]

    resp = client.post(f"/offers/{offer_id}/versions", json={"description": "Checkpoint"}, headers=USER1_HEADERS)
    assert resp.status_code == 201
    created = resp.json()
    assert created["version"] == 2
    assert created["description"] == "Checkpoint"
    assert created["changeType"] == "manual"

    resp = client.get(f"/offers/{offer_id}/versions", headers=USER1_HEADERS)
    assert resp.status_code == 200
    versions = resp.json()["versions"]
    assert [v["version"] for v in versions] == [2, 1]
    assert versions[0]["isCurrent"] is True
    assert versions[1]["isCurrent"] is False
    assert versions[1]["createdBy"] == "user_1"

    resp = client.get(f"/offers/{offer_id}/versions/1", headers=USER1_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["content"] == {"days": 3}
    assert resp.json()["description"] == "Initial version"

    resp = client.get(f"/offers/{offer_id}/versions/9", headers=USER1_HEADERS)
    assert resp.status_code == 404
    assert resp.json()["message"] == "Version not found"

    resp = client.get(f"/offers/{offer_id}/versions/0", headers=USER1_HEADERS)
    assert resp.status_code == 400

    resp = client.get(f"/offers/{offer_id}/versions/abc", headers=USER1_HEADERS)
    assert resp.status_code == 400


def test_create_version_without_body(client, create_offer):
    offer = create_offer().json()

    resp = client.post(f"/offers/{offer['id']}/versions", headers=USER1_HEADERS)
    assert resp.status_code == 201
    assert resp.json()["description"] == ""


def test_duplicate_version_returns_version_exists(client, create_offer):
    offer = create_offer().json()
    client.post(f"/offers/{offer['id']}/versions", headers=USER1_HEADERS)
    client.post(f"/offers/{offer['id']}/versions/1/switch", headers=USER1_HEADERS)

    resp = client.post(f"/offers/{offer['id']}/versions", headers=USER1_HEADERS)
    assert resp.status_code == 409
    assert resp.json()["error"] == "version_exists"


def test_restore_with_backup(client, create_offer):
    resp = create_offer(title="Trip", content={"days": 3})
    offer = resp.json()
    f0 = resp.headers["ETag"]

    client.put(
        f"/offers/{offer['id']}",
        json={"title": "Trip v2", "content": {"days": 4}, "createVersion": True},
        headers={**USER1_HEADERS, "If-Match": f0},
    )

    resp = client.post(
        f"/offers/{offer['id']}/versions/1/restore",
        json={"createBackupVersion": True},
        headers=USER1_HEADERS,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["restoredToVersion"] == 1
    assert body["newCurrentVersion"] == 3
    assert body["etag"] == f0
    assert resp.headers["ETag"] == f0

    resp = client.get(f"/offers/{offer['id']}", headers=USER1_HEADERS)
    current = resp.json()
    assert current["content"] == {"days": 3}
    assert current["currentVersion"] == 3
    assert current["totalVersions"] == 3


def test_restore_without_body(client, create_offer):
    offer = create_offer().json()

    resp = client.post(f"/offers/{offer['id']}/versions/1/restore", headers=USER1_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["newCurrentVersion"] is None


def test_publish_version(client, create_offer):
    offer = create_offer().json()
    client.post(f"/offers/{offer['id']}/versions", headers=USER1_HEADERS)

    resp = client.post(f"/offers/{offer['id']}/versions/1/publish", headers=USER1_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["isPublished"] is True

    resp = client.post(
        f"/offers/{offer['id']}/versions/2/publish",
        json={"isPublished": True},
        headers=USER1_HEADERS,
    )
    body = resp.json()
    assert body["publishedVersion"] == 2
    assert body["publicUrl"] == f"https://offers.example.com/offers/{offer['id']}"

    versions = client.get(f"/offers/{offer['id']}/versions", headers=USER1_HEADERS).json()["versions"]
    assert [v["version"] for v in versions if v["isPublished"]] == [2]

    current = client.get(f"/offers/{offer['id']}", headers=USER1_HEADERS).json()
    assert current["isPublished"] is True
    assert current["publishedVersion"] == 2


def test_delete_cascades(client, create_offer):
    offer = create_offer().json()
    client.post(f"/offers/{offer['id']}/versions", headers=USER1_HEADERS)

    resp = client.delete(f"/offers/{offer['id']}", headers=USER2_HEADERS)
    assert resp.status_code == 404

    resp = client.delete(f"/offers/{offer['id']}", headers=USER1_HEADERS)
    assert resp.status_code == 204

    resp = client.get(f"/offers/{offer['id']}/versions", headers=USER1_HEADERS)
    assert resp.status_code == 404

    resp = client.delete(f"/offers/{offer['id']}", headers=USER1_HEADERS)
    assert resp.status_code == 404


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["storage"]["connected"] is True
    assert body["storage"]["backend"] in ("sql", "file")
