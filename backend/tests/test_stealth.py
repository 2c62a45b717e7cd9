"""Tests for identity profiles and the persisted cookie jar."""

import json

import pytest

from relcis.services.stealth import (
    USER_AGENTS,
    VIEWPORTS,
    CookieStore,
    generate_profile,
)


class TestProfiles:
    def test_profile_draws_from_pools(self):
        for _ in range(20):
            profile = generate_profile()
            assert profile.user_agent in USER_AGENTS
            assert profile.viewport in VIEWPORTS
            assert profile.device_scale_factor in (1, 2)
            assert profile.cookies == ()

    def test_platform_matches_user_agent(self):
        profile = generate_profile()
        if "Windows" in profile.user_agent:
            assert profile.platform == "Win32"
        elif "Macintosh" in profile.user_agent:
            assert profile.platform == "MacIntel"
        else:
            assert profile.platform == "Linux x86_64"

    def test_context_options_and_init_script(self):
        profile = generate_profile(cookies=[{"name": "a", "value": "1"}])
        options = profile.context_options()
        assert options["user_agent"] == profile.user_agent
        assert options["timezone_id"] == profile.timezone_id
        assert options["locale"] == "en-US"
        assert profile.cookies == ({"name": "a", "value": "1"},)

        script = profile.init_script()
        assert "webdriver" in script
        assert profile.webgl_renderer in script
        assert f"get: () => {profile.hardware_concurrency}" in script


class TestCookieStore:
    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path):
        store = CookieStore(tmp_path / "state" / "cookies.json")
        cookies = [{"name": "sid", "value": "x", "domain": ".yahoo.com", "path": "/"}]
        await store.save(cookies)
        assert await store.load() == cookies

    @pytest.mark.asyncio
    async def test_missing_file_loads_empty(self, tmp_path):
        assert await CookieStore(tmp_path / "nope.json").load() == []

    @pytest.mark.asyncio
    async def test_corrupt_file_loads_empty(self, tmp_path):
        path = tmp_path / "cookies.json"
        path.write_text("{not json", encoding="utf-8")
        assert await CookieStore(path).load() == []

    @pytest.mark.asyncio
    async def test_nameless_entries_are_ignored(self, tmp_path):
        path = tmp_path / "cookies.json"
        path.write_text(json.dumps([{"value": "x"}, {"name": "ok", "value": "y"}]), encoding="utf-8")
        assert await CookieStore(path).load() == [{"name": "ok", "value": "y"}]

    @pytest.mark.asyncio
    async def test_save_failure_does_not_raise(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("", encoding="utf-8")
        # Parent "directory" is a regular file, so the write must fail
        store = CookieStore(blocker / "cookies.json")
        await store.save([{"name": "a", "value": "b"}])
        assert await store.load() == []
