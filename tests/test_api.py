"""
API Endpoint Tests for the IDML tag export service

Run with: pytest tests/test_api.py -v
"""

import io
import zipfile

import pytest
from fastapi.testclient import TestClient

from idml_core.api import create_app

MAPPINGS = {"101": {"title": "headline", "image": "hero_image"}}


@pytest.fixture
def client(engine):
    """Create test client."""
    return TestClient(create_app(engine))


class TestHealthEndpoint:
    """Tests for /api/v1/health endpoint."""

    def test_health_returns_200(self, client):
        """Health endpoint should return 200."""
        response = client.get("/api/v1/health")
        assert response.status_code == 200

    def test_health_returns_status(self, client):
        """Health endpoint should include status field."""
        data = client.get("/api/v1/health").json()
        assert data["status"] == "healthy"
        assert data["tag_convention"] == "tag-based"


class TestExtractEndpoint:
    """Tests for /api/v1/templates/{template_id}/extract."""

    def test_extract_without_body(self, client):
        """Extraction should work with default options."""
        response = client.post("/api/v1/templates/t1/extract")
        assert response.status_code == 200
        data = response.json()
        assert data["action"] == "extracted"
        assert "hero_image" in data["tags"]
        assert data["tags_details"]["headline"]["page_numbers"] == [1, 2]

    def test_extract_then_load(self, client):
        """Second request should load the cached registry."""
        client.post("/api/v1/templates/t1/extract", json={})
        response = client.post("/api/v1/templates/t1/extract", json={})
        assert response.json()["action"] == "loaded"

    def test_force(self, client):
        client.post("/api/v1/templates/t1/extract", json={})
        response = client.post("/api/v1/templates/t1/extract", json={"force": True})
        assert response.json()["action"] == "extracted"

    def test_unknown_template_returns_404(self, client):
        response = client.post("/api/v1/templates/nope/extract", json={})
        assert response.status_code == 404
        assert "message" in response.json()

    def test_template_without_tags_returns_422(self, client):
        response = client.post("/api/v1/templates/t-empty/extract", json={})
        assert response.status_code == 422
        assert "No tags found" in response.json()["message"]

    def test_unsupported_convention_returns_400(self, client):
        response = client.post("/api/v1/templates/t1/extract", json={"tag_convention": "style-based"})
        assert response.status_code == 400

    def test_invalid_policy_rejected(self, client):
        response = client.post("/api/v1/templates/t1/extract", json={"policy": "sometimes"})
        assert response.status_code == 422


class TestExportEndpoint:
    """Tests for /api/v1/exports and downloads."""

    def test_export_and_download(self, client):
        """Export should return a download URL for an archive we can fetch."""
        response = client.post("/api/v1/exports", json={
            "template_id": "t1",
            "mappings": MAPPINGS,
            "export_date": "2024-05-01",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["filename"] == "idml-export-spring-issue-2024-05-01.zip"
        assert data["used_tags"] == ["headline", "hero_image"]

        download = client.get(f"/api/v1/downloads/{data['filename']}")
        assert download.status_code == 200
        with zipfile.ZipFile(io.BytesIO(download.content)) as zf:
            assert "export-spring-issue.idml" in zf.namelist()

    def test_export_validation_error(self, client):
        response = client.post("/api/v1/exports", json={"template_id": "t1"})
        assert response.status_code == 400

    def test_export_unknown_item(self, client):
        response = client.post("/api/v1/exports", json={
            "template_id": "t1",
            "mappings": {"999": {"title": "headline"}},
        })
        assert response.status_code == 404

    def test_download_missing_file(self, client):
        response = client.get("/api/v1/downloads/missing.zip")
        assert response.status_code == 404

    def test_download_hidden_file(self, client):
        response = client.get("/api/v1/downloads/..hidden.zip")
        assert response.status_code == 404
