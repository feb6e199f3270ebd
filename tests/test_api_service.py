import uuid


class TestServiceEndpoints:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_metrics(self, client, auth_headers, document):
        client.get(f"/documents/{document.id}", headers=auth_headers)
        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert "docvault_http_requests_total" in resp.text
        assert 'route="/documents/{document_id}"' in resp.text

    def test_unknown_person_is_anonymous(self, client, document):
        resp = client.get(
            f"/documents/{document.id}", headers={"X-Person-Id": str(uuid.uuid4())}
        )
        assert resp.status_code == 404
