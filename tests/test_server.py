import os
import sys

import pytest
from fastapi.testclient import TestClient

# Add the parent directory to sys.path so we can import main
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import config
from main import app


@pytest.fixture
def client(tmp_path, monkeypatch):
    """A client whose app stores sites in an isolated directory."""
    monkeypatch.setattr(config, "SITES_DIR", str(tmp_path / "sites"))
    monkeypatch.setattr(config, "TEMP_DIR", str(tmp_path / "temp"))
    monkeypatch.setattr(config, "HOSTING_DOMAIN", "example.test")

    # Entering the client runs the lifespan, which builds the site store
    with TestClient(app) as test_client:
        yield test_client


def upload(client, subdomain, *files):
    data = {"subdomain": subdomain} if subdomain is not None else {}
    return client.post(
        "/api/upload",
        data=data,
        files=[("files", (name, content, "application/octet-stream")) for name, content in files],
    )


INDEX = ("index.html", b"<h1>Hello</h1>")
STYLE = ("style.css", b"body { color: red; }")


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "OK"
    assert body["timestamp"]


def test_upload_list_delete_scenario(client):
    """Upload a site, list its files, delete it, and see it gone."""
    response = upload(client, "demo-1", INDEX, STYLE)
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Files uploaded successfully!"
    assert body["subdomain"] == "demo-1"
    assert body["url"] == "https://demo-1.example.test"
    assert [f["name"] for f in body["files"]] == ["index.html", "style.css"]
    assert body["files"][1] == {"name": "style.css", "size": len(STYLE[1]), "path": "/sites/demo-1/style.css"}

    response = client.get("/api/files/demo-1")
    assert response.status_code == 200
    files = response.json()["files"]
    assert len(files) == 2
    assert {f["name"] for f in files} == {"index.html", "style.css"}
    assert all({"name", "size", "modified"} <= set(f) for f in files)

    response = client.delete("/api/sites/demo-1")
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Site deleted successfully"}

    response = client.get("/api/files/demo-1")
    assert response.status_code == 404
    assert response.json() == {"error": "Site not found"}


def test_upload_without_subdomain(client):
    response = upload(client, None, INDEX)
    assert response.status_code == 400
    assert response.json() == {"error": "Subdomain is required"}


def test_upload_invalid_subdomain(client):
    response = upload(client, "-bad-", INDEX)
    assert response.status_code == 400
    assert "Invalid subdomain" in response.json()["error"]


def test_upload_without_files(client):
    response = client.post("/api/upload", data={"subdomain": "demo"})
    assert response.status_code == 400
    assert response.json() == {"error": "No files uploaded"}


def test_upload_without_index(client):
    response = upload(client, "demo", STYLE)
    assert response.status_code == 400
    assert response.json() == {"error": "You must include an index.html file"}

    assert client.get("/api/files/demo").status_code == 404


def test_upload_disallowed_type(client):
    response = upload(client, "demo", INDEX, ("tool.exe", b"MZ"))
    assert response.status_code == 400
    assert response.json() == {"error": "File type .exe not allowed"}
    assert client.get("/api/sites").json() == {"total": 0, "sites": []}


def test_upload_too_many_files(client):
    files = [INDEX] + [(f"page{i}.html", b"<p></p>") for i in range(config.MAX_FILES)]
    response = upload(client, "demo", *files)
    assert response.status_code == 413
    assert "Too many files" in response.json()["error"]


def test_upload_accepts_exactly_max_files(client):
    files = [INDEX] + [(f"page{i}.html", b"<p></p>") for i in range(config.MAX_FILES - 1)]
    response = upload(client, "demo", *files)
    assert response.status_code == 200
    assert len(response.json()["files"]) == config.MAX_FILES
    assert len(client.get("/api/files/demo").json()["files"]) == config.MAX_FILES


def test_malformed_upload_uses_error_body(client):
    """Form fields of the wrong kind are a 400 with an error message, not a 422."""
    response = client.post("/api/upload", data={"subdomain": "demo", "files": "oops"})
    assert response.status_code == 400
    body = response.json()
    assert set(body) == {"error"}
    assert "files" in body["error"]
    assert client.get("/api/files/demo").status_code == 404


def test_upload_storage_failure(client, tmp_path):
    """An I/O error while writing is a 500 that does not reveal disk paths."""
    (tmp_path / "sites" / "demo").write_text("not a directory")

    response = upload(client, "demo", INDEX)

    assert response.status_code == 500
    assert response.json() == {"error": "Error storing files"}
    assert str(tmp_path) not in response.text
    assert list((tmp_path / "temp").iterdir()) == []


def test_list_sites(client):
    assert client.get("/api/sites").json() == {"total": 0, "sites": []}

    upload(client, "alpha", INDEX)
    upload(client, "beta", INDEX, STYLE)

    body = client.get("/api/sites").json()
    assert body["total"] == 2
    sites = {site["name"]: site for site in body["sites"]}
    assert sites["alpha"] == {
        "name": "alpha",
        "url": "https://alpha.example.test",
        "fileCount": 1,
        "files": ["index.html"],
    }
    assert sites["beta"]["fileCount"] == 2


def test_delete_unknown_site(client):
    response = client.delete("/api/sites/ghost")
    assert response.status_code == 404
    assert response.json() == {"error": "Site not found"}


def test_serve_site_files(client):
    upload(client, "demo", INDEX, STYLE)

    for path in ("/sites/demo", "/sites/demo/", "/sites/demo/index.html"):
        response = client.get(path)
        assert response.status_code == 200
        assert response.content == INDEX[1]
        assert response.headers["content-type"].startswith("text/html")

    response = client.get("/sites/demo/style.css")
    assert response.status_code == 200
    assert response.content == STYLE[1]
    assert response.headers["content-type"].startswith("text/css")


def test_serve_spa_fallback(client):
    upload(client, "demo", INDEX)

    response = client.get("/sites/demo/dashboard/settings")
    assert response.status_code == 200
    assert response.content == INDEX[1]


def test_serve_unknown_site(client):
    response = client.get("/sites/ghost/")
    assert response.status_code == 404
    assert response.json() == {"error": "Site not found"}


def test_unknown_route_uses_error_body(client):
    response = client.get("/api/nothing-here")
    assert response.status_code == 404
    assert "error" in response.json()


def test_cors_preflight_for_allowed_origin(client):
    response = client.options(
        "/api/sites",
        headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "GET"},
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
    assert response.headers["access-control-allow-credentials"] == "true"


def test_head_request_on_site_file(client):
    upload(client, "demo", INDEX, STYLE)

    response = client.head("/sites/demo/style.css")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/css")
    assert response.headers["content-length"] == str(len(STYLE[1]))
    assert response.content == b""
