import uuid


class TestPresenceEndpoints:
    def test_heartbeat_and_viewers(self, client, auth_headers, document, other_person):
        other_headers = {"X-Person-Id": str(other_person.id)}
        client.post(
            f"/documents/{document.id}/permissions",
            json={"person_id": str(other_person.id), "role": "viewer"},
            headers=auth_headers,
        )
        resp = client.post(
            "/presence/heartbeat",
            json={
                "document_id": str(document.id),
                "cursor_position": 4,
                "selection": {"start": 2, "end": 5},
            },
            headers=other_headers,
        )
        assert resp.status_code == 204
        client.post(
            "/presence/heartbeat",
            json={"document_id": str(document.id)},
            headers=auth_headers,
        )

        resp = client.get(f"/presence/documents/{document.id}", headers=auth_headers)
        rows = resp.json()
        assert [r["person_id"] for r in rows] == [str(other_person.id)]
        assert rows[0]["selection"] == {"start": 2, "end": 5}
        assert rows[0]["person"]["email"] == other_person.email

    def test_unreadable_document_returns_empty(
        self, client, auth_headers, document, other_person
    ):
        client.post(
            "/presence/heartbeat",
            json={"document_id": str(document.id)},
            headers=auth_headers,
        )
        resp = client.get(
            f"/presence/documents/{document.id}",
            headers={"X-Person-Id": str(other_person.id)},
        )
        assert resp.status_code == 200
        assert resp.json() == []

    def test_inactive(self, client, auth_headers, document, other_person):
        other_headers = {"X-Person-Id": str(other_person.id)}
        client.post(
            f"/documents/{document.id}/permissions",
            json={"person_id": str(other_person.id), "role": "viewer"},
            headers=auth_headers,
        )
        client.post(
            "/presence/heartbeat",
            json={"document_id": str(document.id)},
            headers=other_headers,
        )
        assert client.post("/presence/inactive", headers=other_headers).status_code == 204
        resp = client.get(f"/presence/documents/{document.id}", headers=auth_headers)
        assert resp.json() == []

    def test_reversed_selection_rejected(self, client, auth_headers):
        resp = client.post(
            "/presence/heartbeat",
            json={"selection": {"start": 5, "end": 2}},
            headers=auth_headers,
        )
        assert resp.status_code == 422

    def test_workspace(self, client, auth_headers, other_person):
        workspace_id = str(uuid.uuid4())
        client.post(
            "/presence/heartbeat",
            json={"workspace_id": workspace_id},
            headers={"X-Person-Id": str(other_person.id)},
        )
        resp = client.get(f"/presence/workspaces/{workspace_id}", headers=auth_headers)
        assert [r["person_id"] for r in resp.json()] == [str(other_person.id)]
