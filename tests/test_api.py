from __future__ import annotations

import base64
import io

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from PIL import Image

from app.dependencies import get_sticker_service
from app.main import app
from helpers import black_canvas_with_square, image_bytes
from sticker_engine import InMemoryCredentialStore
from sticker_engine.client import ContentResult
from sticker_engine.exceptions import TransientError


@pytest.fixture
def api(make_service):
    def _client(**service_options) -> TestClient:
        service = make_service(**service_options)
        app.dependency_overrides[get_sticker_service] = lambda: service
        return TestClient(app)

    yield _client
    app.dependency_overrides.clear()


def _png_upload() -> dict:
    return {"file": ("sticker.png", image_bytes(black_canvas_with_square()), "image/png")}


def test_health(api) -> None:
    response = api().get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_create_sticker_from_prompt(api, script) -> None:
    response = api().post("/api/v1/stickers", data={"prompt": "a cat", "enhance": "false"})

    assert response.status_code == 201
    body = response.json()
    assert body["prompt"] == "a cat"
    assert body["mime_type"] == "image/png"
    with Image.open(io.BytesIO(base64.b64decode(body["image_base64"]))) as image:
        assert image.mode == "RGBA"
    assert script.methods() == ["generate_images"]


def test_create_sticker_requires_input(api, script) -> None:
    response = api().post("/api/v1/stickers", data={"prompt": "  "})

    assert response.status_code == 400
    assert response.json()["code"] == "BAD_REQUEST"
    assert script.calls == []


def test_create_sticker_rejects_non_image_upload(api) -> None:
    response = api().post(
        "/api/v1/stickers",
        files={"file": ("notes.txt", b"hello", "text/plain")},
    )

    assert response.status_code == 400
    assert "notes.txt" in response.json()["detail"]


def test_exhausted_quota_returns_payment_required(api) -> None:
    client = api(service_store=InMemoryCredentialStore(quota_count=5))

    response = client.post("/api/v1/stickers", data={"prompt": "a cat", "enhance": "false"})

    assert response.status_code == 402
    assert response.json()["code"] == "API_KEY_REQUIRED"


def test_rejected_user_key_returns_unauthorized(api, script) -> None:
    script.queue("generate_images", TransientError("API key not valid. Please pass a valid API key."))
    client = api(service_store=InMemoryCredentialStore(user_key="stale"))

    response = client.post("/api/v1/stickers", data={"prompt": "a cat", "enhance": "false"})

    assert response.status_code == 401
    assert response.json()["code"] == "API_KEY_INVALID"


def test_service_unavailable_after_retries(api, script) -> None:
    script.queue("generate_images", *[TransientError("503 overloaded")] * 3)

    response = api().post("/api/v1/stickers", data={"prompt": "a cat", "enhance": "false"})

    assert response.status_code == 503
    assert response.json()["code"] == "SERVICE_UNAVAILABLE"


def test_empty_generation_returns_bad_gateway(api, script) -> None:
    script.queue("generate_images", None)

    response = api().post("/api/v1/stickers", data={"prompt": "a cat", "enhance": "false"})

    assert response.status_code == 502
    assert response.json()["code"] == "GENERATION_EMPTY"


def test_export_returns_webp_attachment(api) -> None:
    response = api().post("/api/v1/stickers/export", files=_png_upload())

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/webp"
    assert response.headers["content-disposition"].startswith('attachment; filename="sticker-')
    assert float(response.headers["x-export-quality"]) <= 0.9
    assert len(response.content) <= 99 * 1024
    with Image.open(io.BytesIO(response.content)) as image:
        assert image.size == (512, 512)


def test_export_undecodable_upload(api) -> None:
    response = api().post(
        "/api/v1/stickers/export",
        files={"file": ("broken.png", b"not really a png", "image/png")},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "DECODE_ERROR"


def test_edit_sticker(api, script) -> None:
    script.queue("generate_content", ContentResult(image=image_bytes(black_canvas_with_square())))

    response = api().post("/api/v1/stickers/edit", files=_png_upload(), data={"instruction": "add a hat"})

    assert response.status_code == 200
    assert response.json()["prompt"] == "Edit: add a hat"


def test_detect_subject(api, script) -> None:
    script.queue("generate_content", ContentResult(text="A suspicious pigeon"))

    response = api().post("/api/v1/detect", files=_png_upload())

    assert response.status_code == 200
    assert response.json() == {"text": "A suspicious pigeon"}
    assert script.calls[0]["mime_type"] == "image/jpeg"


def test_enhance_prompt(api) -> None:
    response = api().post("/api/v1/prompts/enhance", json={"prompt": "shark"})

    assert response.status_code == 200
    assert response.json() == {"text": "a cat", "sources": []}


def test_generate_image(api, script) -> None:
    response = api().post("/api/v1/images", json={"prompt": "a skyline"})

    assert response.status_code == 200
    assert response.json()["mime_type"] == "image/jpeg"
    assert script.calls[0]["aspect_ratio"] == "16:9"


def test_key_lifecycle_and_quota(api, store) -> None:
    client = api()

    assert client.get("/api/v1/quota").json() == {
        "used": 0,
        "limit": 5,
        "remaining": 5,
        "has_user_key": False,
    }

    response = client.post("/api/v1/keys", json={"api_key": "my-key"})
    assert response.json() == {"valid": True}
    assert client.get("/api/v1/quota").json()["has_user_key"] is True

    response = client.delete("/api/v1/keys")
    assert response.status_code == 204
    assert client.get("/api/v1/quota").json()["has_user_key"] is False


def test_service_is_read_from_app_state(make_service) -> None:
    state_app = FastAPI()
    service = make_service()
    state_app.state.sticker_service = service

    assert get_sticker_service(Request({"type": "http", "app": state_app})) is service


def test_missing_service_fails_loudly() -> None:
    with pytest.raises(RuntimeError):
        get_sticker_service(Request({"type": "http", "app": FastAPI()}))
