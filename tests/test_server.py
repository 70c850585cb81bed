"""Tests for the FastAPI surface."""

import base64

import httpx
import pytest
from fastapi.testclient import TestClient

from selllink.capabilities import build_capabilities
from selllink.capabilities.gemini import GeminiClient
from selllink.config import SellLinkConfig
from selllink.server import create_app

from conftest import PNG_BYTES, text_response

CUTOUT = b"\x89PNG\r\n\x1a\ncutout"


def gemini_reply(*, model, contents, config=None):
    prompt = contents[-1]
    if "TWD" in prompt:
        return text_response('{"min": 800, "max": 1200}')
    if "轉售風格" in prompt:
        return text_response('{"resell": "自用九成新", "brand": "經典白鞋"}')
    return text_response('{"items": ["1. Nike Air Force", "白色球鞋"]}')


def clipdrop_handler(request: httpx.Request) -> httpx.Response:
    assert request.headers["x-api-key"] == "clip-key"
    return httpx.Response(200, headers={"content-type": "image/png"}, content=CUTOUT)


@pytest.fixture
def config() -> SellLinkConfig:
    config = SellLinkConfig(public_url="https://sell.example")
    config.clipdrop_api_key = "clip-key"
    return config


@pytest.fixture
def client(config, genai_client):
    genai_client.aio.models.generate_content.side_effect = gemini_reply
    capabilities = build_capabilities(
        config,
        client=httpx.AsyncClient(transport=httpx.MockTransport(clipdrop_handler)),
        gemini=GeminiClient(api_key="test-key", client=genai_client),
    )
    app = create_app(config=config, capabilities=capabilities)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def bare_client():
    """App with no keys configured: every capability falls back."""
    with TestClient(create_app(config=SellLinkConfig())) as test_client:
        yield test_client


def upload(client: TestClient):
    return client.post(
        "/api/wizard/upload",
        files={"image": ("shoe.png", PNG_BYTES, "image/png")},
    )


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["backends"]["remove_bg"] == "clipdrop"


class TestWizardFlow:
    def test_full_listing(self, client):
        assert upload(client).status_code == 200

        detected = client.post("/api/wizard/detect").json()
        assert detected["items"] == ["Nike Air Force", "白色球鞋"]
        assert detected["selectedLabel"] == "Nike Air Force"

        label = client.post("/api/wizard/label", json={"label": "Nike Air Force", "officialUrl": "https://nike.com"})
        assert label.json()["next"] == "/copy"

        removed = client.post("/api/wizard/remove-bg").json()
        assert removed["usedFallback"] is False
        assert base64.b64decode(removed["payload"]) == CUTOUT

        copy = client.post("/api/wizard/copy").json()
        assert copy == {"brandStyle": "經典白鞋", "resaleStyle": "自用九成新"}

        confirmed = client.post("/api/wizard/copy/confirm", json={**copy, "style": "resaleStyle"})
        assert confirmed.json()["next"] == "/price"

        assert client.post("/api/wizard/price-hint").json() == {"min": 800, "max": 1200}

        share = client.post(
            "/api/wizard/share",
            json={"price": "990", "nickname": "小明", "contact": {"type": "LINE", "value": "ming"}},
        ).json()
        slug = share["slug"]
        assert share["next"] == f"/share/{slug}"

        opened = client.get(f"/api/wizard/share/{slug}").json()
        assert opened["shareUrl"] == f"https://sell.example/p/{slug}"
        assert opened["shareText"] == "來看看我用 AI SellLink 賣的「Nike Air Force」"
        assert opened["contact"]["href"] == "https://line.me/ti/p/~ming"

        public = client.get(f"/p/{slug}").json()
        assert public["found"] is True
        assert public["title"] == "Nike Air Force"
        assert public["displayText"] == "自用九成新"
        assert public["price"] == 990
        assert public["image"].startswith("data:image/png;base64,")

    def test_public_image_download(self, client, config, tmp_path):
        config.export_dir = str(tmp_path)
        upload(client)
        client.post("/api/wizard/detect")
        client.post("/api/wizard/remove-bg")
        client.post("/api/wizard/copy/confirm", json={"brandStyle": "a", "resaleStyle": "b"})
        slug = client.post("/api/wizard/share", json={"price": 100, "nickname": "小明"}).json()["slug"]
        client.get(f"/api/wizard/share/{slug}")

        response = client.get(f"/p/{slug}/image")

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.content == CUTOUT
        assert (tmp_path / f"{slug}.png").read_bytes() == CUTOUT

    def test_public_image_unknown_slug(self, client, config, tmp_path):
        config.export_dir = str(tmp_path)
        response = client.get("/p/unknown-slug/image")
        assert response.status_code == 404
        assert "error" in response.json()

    def test_gates_redirect_upstream(self, client):
        response = client.post("/api/wizard/detect")
        assert response.status_code == 409
        assert response.json()["redirect"] == "/upload"

        upload(client)
        response = client.post("/api/wizard/price-hint")
        assert response.status_code == 409
        assert response.json()["redirect"] == "/detect"

    def test_navigate(self, client):
        body = client.get("/api/wizard/navigate", params={"path": "/price"}).json()
        assert body["redirected"] is True
        assert body["route"]["stage"] == "upload"

        unknown = client.get("/api/wizard/navigate", params={"path": "/somewhere"}).json()
        assert unknown["route"]["path"] == "/upload"

    def test_share_validation(self, client):
        upload(client)
        client.post("/api/wizard/detect")
        client.post("/api/wizard/copy/confirm", json={"brandStyle": "a", "resaleStyle": "b"})

        response = client.post("/api/wizard/share", json={"price": 0, "nickname": "小明"})
        assert response.status_code == 400
        assert "error" in response.json()

    def test_stale_share_link_after_reset(self, client):
        upload(client)
        client.post("/api/wizard/detect")
        client.post("/api/wizard/copy/confirm", json={"brandStyle": "a", "resaleStyle": "b"})
        slug = client.post("/api/wizard/share", json={"price": 100, "nickname": "小明"}).json()["slug"]

        client.post("/api/wizard/reset")

        response = client.get(f"/api/wizard/share/{slug}")
        assert response.status_code == 409
        assert response.json()["redirect"] == "/upload"
        assert client.get("/api/wizard/draft").json() == {"draft": {}}

    def test_upload_rejects_non_image(self, client):
        response = client.post(
            "/api/wizard/upload",
            files={"image": ("notes.txt", b"hello", "text/plain")},
        )
        assert response.status_code == 400


def test_public_not_found(client):
    body = client.get("/p/unknown-slug").json()
    assert body["found"] is False
    assert body["createPath"] == "/upload"


class TestFallbacks:
    def test_wizard_continues_without_keys(self, bare_client):
        upload(bare_client)

        detected = bare_client.post("/api/wizard/detect").json()
        assert detected["items"] == []
        assert detected["usedFallback"] is True

        bare_client.post("/api/wizard/label", json={"label": "手動輸入"})
        removed = bare_client.post("/api/wizard/remove-bg").json()
        assert removed["usedFallback"] is True

        copy = bare_client.post("/api/wizard/copy").json()
        assert copy["resaleStyle"]

        bare_client.post("/api/wizard/copy/confirm", json=copy)
        assert bare_client.post("/api/wizard/price-hint").json() == {"min": 500, "max": 1500}

    def test_functions_report_missing_keys(self, bare_client):
        response = bare_client.post("/api/suggestPrice", json={"itemName": "保溫杯"})
        assert response.status_code == 500
        assert response.json()["error"] == "suggest_price_failed"


class TestFunctionEndpoints:
    def test_detect_multipart(self, client):
        response = client.post("/api/detect", files={"image": ("shoe.png", PNG_BYTES, "image/png")})
        assert response.json() == {"ok": True, "items": ["Nike Air Force", "白色球鞋"]}

    def test_detect_json(self, client):
        data_uri = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()
        response = client.post("/api/detect", json={"imageBase64": data_uri})
        assert response.json()["ok"] is True

    def test_detect_without_image(self, client):
        response = client.post("/api/detect", json={})
        assert response.status_code == 400
        assert response.json()["ok"] is False

    def test_remove_bg(self, client):
        encoded = base64.b64encode(PNG_BYTES).decode()
        body = client.post("/api/remove-bg", json={"imageBase64": encoded, "mimeType": "image/png"}).json()
        assert body["success"] is True
        assert base64.b64decode(body["base64"]) == CUTOUT

    def test_remove_bg_requires_image(self, client):
        response = client.post("/api/remove-bg", json={})
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_generate_copy(self, client):
        body = client.post("/api/generateCopy", json={"itemName": "Nike Air Force"}).json()
        assert body == {"brandStyle": "經典白鞋", "resaleStyle": "自用九成新"}

    def test_generate_copy_requires_name(self, client):
        assert client.post("/api/generateCopy", json={"itemName": " "}).status_code == 400

    def test_suggest_price(self, client):
        assert client.post("/api/suggestPrice", json={"itemName": "Nike Air Force"}).json() == {
            "min": 800,
            "max": 1200,
        }


def test_draft_summary_omits_image_data():
    from selllink.models import ListingDraft, OriginalImage
    from selllink.server.websocket import draft_summary

    image = OriginalImage(data=PNG_BYTES, mime_type="image/png", filename="shoe.png")
    summary = draft_summary(ListingDraft(original_image=image, enhanced_image_url=image.data_uri))

    assert summary["originalImage"] == {"filename": "shoe.png", "mimeType": "image/png"}
    assert summary["enhancedImageUrl"] == "inline"


def test_websocket_streams_draft_updates(client):
    with client.websocket_connect("/ws/draft") as websocket:
        upload(client)
        message = websocket.receive_json()

    assert message["type"] == "draft_updated"
    assert message["data"]["originalImage"]["filename"] == "shoe.png"
