"""Tests for the listing wizard flow."""

import asyncio
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import pytest

from selllink.draft_store import DraftStore
from selllink.errors import ListingValidationError
from selllink.models import (
    UNRECOGNIZED_ITEM,
    BackendCallResult,
    Contact,
    DetectResult,
    ListingCopy,
    PriceHint,
)
from selllink.share_store import ShareStore
from selllink.wizard import ListingWizard

from conftest import PNG_BYTES

JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 16


def make_services():
    detector = MagicMock(backend_name="gemini")
    detector.detect = AsyncMock(return_value=DetectResult(items=["Nike Air Force", "白色球鞋"], backend="gemini"))

    remover = MagicMock(backend_name="clipdrop")
    remover.remove_background = AsyncMock(
        return_value=BackendCallResult(payload="Q1VU", kind="base64", mime_type="image/png", backend="clipdrop")
    )

    copywriter = MagicMock(backend_name="gemini")
    copywriter.generate = AsyncMock(return_value=ListingCopy(brand_style="品牌文案", resale_style="轉售文案"))

    price_advisor = MagicMock(backend_name="gemini")
    price_advisor.suggest = AsyncMock(return_value=PriceHint(800, 1200))
    return detector, remover, copywriter, price_advisor


@pytest.fixture
def wizard():
    detector, remover, copywriter, price_advisor = make_services()
    share_store = ShareStore()
    wizard = ListingWizard(
        store=DraftStore(),
        share_store=share_store,
        detector=detector,
        remover=remover,
        copywriter=copywriter,
        price_advisor=price_advisor,
    )
    yield wizard
    share_store.close()


class TestUpload:
    def test_stores_image_with_sniffed_type(self, wizard):
        draft = wizard.upload(PNG_BYTES, filename="photo")
        assert draft.original_image.mime_type == "image/png"
        assert draft.original_image.data == PNG_BYTES

    def test_rejects_empty_upload(self, wizard):
        with pytest.raises(ListingValidationError):
            wizard.upload(b"")

    def test_rejects_non_image(self, wizard):
        with pytest.raises(ListingValidationError):
            wizard.upload(b"hello", filename="notes.txt", mime_type="text/plain")


class TestDetect:
    @pytest.mark.asyncio
    async def test_preselects_first_candidate(self, wizard):
        wizard.upload(PNG_BYTES)
        result = await wizard.run_detect()

        assert result.items == ["Nike Air Force", "白色球鞋"]
        assert wizard.draft.candidates == ["Nike Air Force", "白色球鞋"]
        assert wizard.draft.selected_label == "Nike Air Force"

    @pytest.mark.asyncio
    async def test_sentinel_is_not_preselected(self, wizard):
        wizard.detector.detect.return_value = DetectResult(items=[UNRECOGNIZED_ITEM])
        wizard.upload(PNG_BYTES)
        await wizard.run_detect()

        assert wizard.draft.candidates == [UNRECOGNIZED_ITEM]
        assert wizard.draft.selected_label is None

    @pytest.mark.asyncio
    async def test_without_image(self, wizard):
        assert await wizard.run_detect() is None
        wizard.detector.detect.assert_not_called()

    @pytest.mark.asyncio
    async def test_result_for_replaced_photo_is_discarded(self, wizard):
        release = asyncio.Event()

        async def slow_detect(image):
            await release.wait()
            return DetectResult(items=["舊照片的商品"])

        wizard.detector.detect = AsyncMock(side_effect=slow_detect)
        wizard.upload(PNG_BYTES)

        pending = asyncio.create_task(wizard.run_detect())
        await asyncio.sleep(0)
        assert wizard.session.is_loading("detect")

        wizard.upload(JPEG_BYTES)
        release.set()

        assert await pending is None
        assert wizard.draft.candidates is None
        assert not wizard.session.is_loading("detect")

    @pytest.mark.asyncio
    async def test_only_latest_detect_applies(self, wizard):
        release_first = asyncio.Event()
        calls = 0

        async def detect(image):
            nonlocal calls
            calls += 1
            if calls == 1:
                await release_first.wait()
                return DetectResult(items=["第一次"])
            return DetectResult(items=["第二次"])

        wizard.detector.detect = AsyncMock(side_effect=detect)
        wizard.upload(PNG_BYTES)

        first = asyncio.create_task(wizard.run_detect())
        await asyncio.sleep(0)
        second = await wizard.run_detect()
        release_first.set()

        assert await first is None
        assert second.items == ["第二次"]
        assert wizard.draft.candidates == ["第二次"]

    @pytest.mark.asyncio
    async def test_new_photo_replaces_previous_selection(self, wizard):
        wizard.upload(PNG_BYTES)
        await wizard.run_detect()
        await wizard.remove_background()
        wizard.confirm_copy(ListingCopy(brand_style="品牌", resale_style="轉售"))
        wizard.store.update(lambda d: replace(d, nickname="小明"))
        assert wizard.draft.selected_label == "Nike Air Force"

        wizard.detector.detect.return_value = DetectResult(items=["馬克杯", "咖啡杯"])
        draft = wizard.upload(JPEG_BYTES, filename="mug.jpg")
        assert draft.selected_label is None
        assert draft.candidates is None
        assert draft.enhanced_image_url is None
        assert draft.copy is None
        assert draft.nickname == "小明"

        await wizard.run_detect()
        assert wizard.draft.candidates == ["馬克杯", "咖啡杯"]
        assert wizard.draft.selected_label == "馬克杯"

    def test_manual_label(self, wizard):
        wizard.upload(PNG_BYTES)
        draft = wizard.choose_label("  自己輸入的名稱 ", official_url=" ")

        assert draft.selected_label == "自己輸入的名稱"
        assert draft.official_url is None

    def test_blank_label_rejected(self, wizard):
        with pytest.raises(ListingValidationError):
            wizard.choose_label("   ")


class TestCopyStage:
    @pytest.mark.asyncio
    async def test_remove_background_sets_enhanced_image(self, wizard):
        wizard.upload(PNG_BYTES)
        result = await wizard.remove_background()

        assert wizard.draft.enhanced_image_url == "data:image/png;base64,Q1VU"
        assert result.backend == "clipdrop"

    @pytest.mark.asyncio
    async def test_copy_request_includes_detection_reason(self, wizard):
        wizard.upload(PNG_BYTES)
        await wizard.run_detect()
        wizard.choose_label("Nike Air Force", "https://nike.com")

        copy = await wizard.run_copy()

        request = wizard.copywriter.generate.call_args.args[0]
        assert request.item_name == "Nike Air Force"
        assert request.reason == "AI 辨識候選：Nike Air Force、白色球鞋"
        assert request.official_url == "https://nike.com"
        assert copy.resale_style == "轉售文案"
        # generation alone does not commit the copy
        assert wizard.draft.copy is None

    @pytest.mark.asyncio
    async def test_copy_without_label(self, wizard):
        assert await wizard.run_copy() is None

    def test_confirm_copy_defaults_enhanced_image(self, wizard):
        wizard.upload(PNG_BYTES)
        wizard.choose_label("Nike Air Force")
        draft = wizard.confirm_copy(ListingCopy(brand_style="品牌", resale_style="轉售"), "brandStyle")

        assert draft.selected_copy_style == "brandStyle"
        assert draft.display_text == "品牌"
        assert draft.enhanced_image_url == draft.original_image.data_uri

    def test_confirm_requires_text(self, wizard):
        with pytest.raises(ListingValidationError):
            wizard.confirm_copy(ListingCopy(brand_style=" ", resale_style=""))

    def test_confirm_requires_both_styles(self, wizard):
        wizard.upload(PNG_BYTES)
        wizard.choose_label("Nike Air Force")

        with pytest.raises(ListingValidationError):
            wizard.confirm_copy(ListingCopy(brand_style="品牌", resale_style=""))
        assert wizard.draft.copy is None
        assert wizard.navigate("/price")[0].stage == "copy"


class TestShare:
    async def _ready_for_price(self, wizard):
        wizard.upload(PNG_BYTES)
        await wizard.run_detect()
        wizard.confirm_copy(ListingCopy(brand_style="品牌", resale_style="轉售"))

    @pytest.mark.asyncio
    async def test_price_hint_stored(self, wizard):
        await self._ready_for_price(wizard)
        hint = await wizard.run_price_hint()

        assert hint == PriceHint(800, 1200)
        assert wizard.draft.price_hint == hint

    @pytest.mark.asyncio
    async def test_generate_share_requires_price_and_nickname(self, wizard):
        await self._ready_for_price(wizard)

        with pytest.raises(ListingValidationError):
            wizard.generate_share("0", "小明")
        with pytest.raises(ListingValidationError):
            wizard.generate_share("990", "  ")
        assert wizard.draft.share_slug is None

    @pytest.mark.asyncio
    async def test_generate_share_fills_defaults(self, wizard):
        await self._ready_for_price(wizard)
        slug = wizard.generate_share("1,200", " 小明 ")

        draft = wizard.draft
        assert draft.share_slug == slug
        assert draft.price == 1200
        assert draft.nickname == "小明"
        assert draft.contact == Contact()
        assert draft.price_hint == PriceHint(0, 0)

    @pytest.mark.asyncio
    async def test_open_share_materializes_once(self, wizard):
        await self._ready_for_price(wizard)
        slug = wizard.generate_share(990, "小明", Contact(type="IG", value="@ming"))

        assert wizard.open_share(slug) is not None
        assert wizard.open_share(slug) is not None
        assert wizard.share_store.count() == 1

        listing = wizard.public_listing(slug)
        assert listing.nickname == "小明"
        assert listing.display_text == "轉售"

    @pytest.mark.asyncio
    async def test_stale_share_link(self, wizard):
        await self._ready_for_price(wizard)
        slug = wizard.generate_share(990, "小明")

        wizard.new_listing()

        assert wizard.open_share(slug) is None
        assert wizard.public_listing(slug) is None

    def test_unknown_public_slug(self, wizard):
        assert wizard.public_listing("does-not-exist") is None


def test_navigate_redirects_upstream(wizard):
    route, decision = wizard.navigate("/copy")
    assert not decision.allowed
    assert route.stage == "upload"


def test_status_reports_backends(wizard):
    status = wizard.status()
    assert status["loading"] == []
    assert status["backends"]["remove_bg"] == "clipdrop"
