"""Tests for service wiring and the command line."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from mindshare_sync.__main__ import build_arg_parser, main
from mindshare_sync.chain.client import ChainClient
from mindshare_sync.config import Settings, clear_settings_cache
from mindshare_sync.service import ServiceState, SyncService
from mindshare_sync.storage.database import DatabaseManager


@pytest.fixture
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'service.db'}")
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.delenv("ADMIN_PRIVATE_KEY", raising=False)
    monkeypatch.delenv("ENABLE_CACHE", raising=False)
    monkeypatch.setenv("SEED_LEADERBOARD", "false")
    clear_settings_cache()
    return Settings()


class TestSyncService:
    """Tests for SyncService lifecycle."""

    @pytest.mark.asyncio
    async def test_components_unavailable_before_start(self, settings: Settings) -> None:
        service = SyncService(settings, background=False)

        with pytest.raises(RuntimeError, match="Service not started"):
            _ = service.orchestrator

    @pytest.mark.asyncio
    async def test_start_and_stop_without_background(self, settings: Settings) -> None:
        async with SyncService(settings, background=False) as service:
            assert service.state is ServiceState.RUNNING
            await service.db.init_schema_async()
            assert await service.deployments.list_latest() == []
            assert service.orchestrator.cache_enabled is False

        assert service.state is ServiceState.STOPPED

    @pytest.mark.asyncio
    async def test_start_twice_fails(self, settings: Settings) -> None:
        service = SyncService(settings, background=False)
        await service.start()
        try:
            with pytest.raises(RuntimeError, match="Cannot start"):
                await service.start()
        finally:
            await service.stop()

    @pytest.mark.asyncio
    async def test_background_start_records_rpc_health(
        self, settings: Settings, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        db = DatabaseManager(settings.database.url)
        await db.init_schema_async()
        await db.dispose_async()
        health_check = AsyncMock(return_value=False)
        monkeypatch.setattr(ChainClient, "health_check", health_check)
        settings.cache.sweep_interval_seconds = 0

        async with SyncService(settings) as service:
            assert service.stats.rpc_healthy is False
            assert service.orchestrator.stats.total_sweeps == 1

        health_check.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_one_shot_start_skips_health_check(
        self, settings: Settings, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        health_check = AsyncMock(return_value=True)
        monkeypatch.setattr(ChainClient, "health_check", health_check)

        async with SyncService(settings, background=False) as service:
            assert service.stats.rpc_healthy is None

        health_check.assert_not_called()


class TestCommandLine:
    """Tests for the command-line entry point."""

    def test_parser_requires_command(self) -> None:
        with pytest.raises(SystemExit):
            build_arg_parser().parse_args([])

    def test_import_markets_args(self) -> None:
        args = build_arg_parser().parse_args(["import-markets", "deploy.json", "--clear"])

        assert args.command == "import-markets"
        assert args.path == Path("deploy.json")
        assert args.clear is True

    def test_close_all_without_key_exits(self, settings: Settings) -> None:
        assert main(["close-all"]) == 2

    def test_seed_then_regenerate(self, settings: Settings, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--create-schema", "seed"]) == 0
        assert '"seeded"' in capsys.readouterr().out

        assert main(["regenerate-leaderboard"]) == 0
        assert '"index": 1' in capsys.readouterr().out

    def test_invalid_configuration_exits(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("DATABASE_URL", raising=False)
        clear_settings_cache()

        assert main(["sweep"]) == 2
        assert "Invalid configuration" in caplog.text
