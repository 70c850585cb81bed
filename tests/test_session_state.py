"""Tests for wizard session request bookkeeping."""

import asyncio

import pytest

from selllink.session_state import WizardSessionState


def test_begin_sets_loading_latch():
    state = WizardSessionState()
    token = state.begin_request("detect")

    assert state.is_loading("detect")
    assert state.is_current("detect", token)


def test_superseded_request_is_discarded():
    state = WizardSessionState()
    first = state.begin_request("copy")
    second = state.begin_request("copy")

    assert not state.finish_request("copy", first)
    assert state.is_loading("copy")

    assert state.finish_request("copy", second)
    assert not state.is_loading("copy")


def test_invalidate_makes_in_flight_stale():
    state = WizardSessionState()
    token = state.begin_request("price")
    state.invalidate("price", "copy")

    assert not state.finish_request("price", token)
    assert not state.is_loading("price")


def test_kinds_are_independent():
    state = WizardSessionState()
    detect = state.begin_request("detect")
    state.begin_request("remove_bg")

    assert state.finish_request("detect", detect)
    assert state.loading_kinds() == ["remove_bg"]


def test_reset_invalidates_everything():
    state = WizardSessionState()
    token = state.begin_request("detect")
    state.reset()

    assert not state.is_current("detect", token)
    assert state.loading_kinds() == []


@pytest.mark.asyncio
async def test_cleanup_cancels_tracked_tasks():
    state = WizardSessionState()
    task = asyncio.create_task(asyncio.sleep(10))
    state.track_task(task)

    await state.cleanup()
    assert task.cancelled()
