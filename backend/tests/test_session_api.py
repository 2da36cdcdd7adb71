"""
API integration tests for session upload, listing, download and delete
"""
import re
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from conftest import PNG_BYTES, encode_multipart
from config.settings import get_settings
from services.session_service import generate_stored_name, is_safe_name, mime_type_for


@pytest.fixture
def client(settings):
    from main import app
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


def upload(client, files, session_id=None):
    fields = {"sessionId": session_id} if session_id is not None else {}
    content_type, body = encode_multipart(fields=fields, files=files)
    return client.post("/api/upload", content=body, headers={"Content-Type": content_type})


THREE_FILES = [
    ("images", "one.png", "image/png", PNG_BYTES),
    ("images", "two.jpg", "image/jpeg", b"\xff\xd8\xff\xe0" + b"j" * 300),
    ("images", "three.webp", "image/webp", b"RIFF" + b"w" * 41),
]


@pytest.mark.integration
class TestUpload:

    def test_upload_creates_session(self, client, settings):
        response = upload(client, THREE_FILES)

        assert response.status_code == 200
        data = response.json()
        assert re.fullmatch(r"[0-9a-f]{32}", data["sessionId"])
        assert data["message"] == "Uploaded 3 file(s)"
        assert [f["originalName"] for f in data["files"]] == ["one.png", "two.jpg", "three.webp"]
        assert [f["size"] for f in data["files"]] == [len(f[3]) for f in THREE_FILES]
        assert data["files"][1]["savedName"].endswith(".jpg")

    def test_upload_into_existing_session(self, client):
        session_id = upload(client, THREE_FILES[:1]).json()["sessionId"]

        response = upload(client, THREE_FILES[1:], session_id=session_id)

        assert response.json()["sessionId"] == session_id
        assert len(client.get(f"/api/session/{session_id}").json()["files"]) == 3

    def test_client_chosen_session_id(self, client):
        response = upload(client, THREE_FILES[:1], session_id="board_42")

        assert response.status_code == 200
        assert response.json()["sessionId"] == "board_42"

    @pytest.mark.parametrize("session_id", ["../escape", "a/b", "x" * 65, "semi;colon"])
    def test_invalid_session_id_is_400(self, client, session_id):
        response = upload(client, THREE_FILES[:1], session_id=session_id)

        assert response.status_code == 400

    def test_upload_without_files_is_400(self, client):
        content_type, body = encode_multipart(fields={"sessionId": "abc"})

        response = client.post("/api/upload", content=body, headers={"Content-Type": content_type})

        assert response.status_code == 400
        assert response.json() == {"error": "no files uploaded"}

    def test_oversized_upload_is_413(self, client, settings):
        settings.MAX_BODY_BYTES = 32

        response = upload(client, THREE_FILES)

        assert response.status_code == 413


@pytest.mark.integration
class TestSessionLifecycle:

    def test_upload_list_delete(self, client):
        session_id = upload(client, THREE_FILES).json()["sessionId"]

        listing = client.get(f"/api/session/{session_id}").json()
        assert listing["sessionId"] == session_id
        assert len(listing["files"]) == 3
        assert sorted(f["size"] for f in listing["files"]) == sorted(len(f[3]) for f in THREE_FILES)
        names = [f["name"] for f in listing["files"]]
        assert names == sorted(names)

        victim = names[0]
        deleted = client.delete(f"/api/session/{session_id}/file/{victim}")
        assert deleted.status_code == 200
        assert deleted.json() == {"ok": True, "deleted": victim}

        assert len(client.get(f"/api/session/{session_id}").json()["files"]) == 2
        assert client.delete(f"/api/session/{session_id}/file/{victim}").status_code == 404

    def test_download_file(self, client):
        stored = upload(client, THREE_FILES[:1]).json()
        saved_name = stored["files"][0]["savedName"]

        listing = client.get(f"/api/session/{stored['sessionId']}").json()
        url = listing["files"][0]["url"]
        assert url == f"/api/session/{stored['sessionId']}/file/{saved_name}"

        response = client.get(url)
        assert response.status_code == 200
        assert response.content == PNG_BYTES
        assert response.headers["content-type"] == "image/png"

    def test_non_image_files_are_not_listed(self, client, settings):
        session_id = upload(client, THREE_FILES[:1]).json()["sessionId"]
        (Path(settings.SESSIONS_DIR) / session_id / "notes.txt").write_text("hi")

        files = client.get(f"/api/session/{session_id}").json()["files"]

        assert [f["mimeType"] for f in files] == ["image/png"]

    def test_non_image_upload_is_stored_but_not_listed(self, client):
        response = upload(client, [
            THREE_FILES[0],
            ("images", "notes.txt", "text/plain", b"just some text"),
        ])
        data = response.json()

        assert response.status_code == 200
        assert data["files"][1]["savedName"].endswith(".txt")

        files = client.get(f"/api/session/{data['sessionId']}").json()["files"]
        assert [f["mimeType"] for f in files] == ["image/png"]

        text_url = f"/api/session/{data['sessionId']}/file/{data['files'][1]['savedName']}"
        assert client.get(text_url).headers["content-type"] == "application/octet-stream"

    def test_unknown_session_is_404(self, client):
        assert client.get("/api/session/doesnotexist").status_code == 404

    def test_unknown_file_is_404(self, client):
        session_id = upload(client, THREE_FILES[:1]).json()["sessionId"]

        assert client.get(f"/api/session/{session_id}/file/missing.png").status_code == 404
        assert client.delete(f"/api/session/{session_id}/file/missing.png").status_code == 404


@pytest.mark.unit
class TestSessionHelpers:

    def test_stored_name_format(self):
        name = generate_stored_name("Holiday.JPEG", "image/jpeg")
        assert re.fullmatch(r"\d{13}_[0-9a-f]{8}\.jpeg", name)

    def test_stored_name_extension_from_mime(self):
        assert generate_stored_name("blob", "image/webp").endswith(".webp")
        assert generate_stored_name("", "application/octet-stream").endswith(".png")

    def test_non_image_upload_keeps_its_extension(self):
        assert generate_stored_name("notes.txt", "text/plain").endswith(".txt")
        assert generate_stored_name("report", "application/pdf").endswith(".bin")
        assert generate_stored_name("../../evil.p$p", "text/plain").endswith(".bin")

    @pytest.mark.parametrize("name", ["", ".", "..", "a/b", "a\\b"])
    def test_unsafe_names(self, name):
        assert is_safe_name(name) is False

    def test_mime_type_for(self):
        assert mime_type_for("x.SVG") == "image/svg+xml"
        assert mime_type_for("x.bin") == "application/octet-stream"
