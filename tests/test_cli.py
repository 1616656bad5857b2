from types import SimpleNamespace

import pytest
from typer.testing import CliRunner

from playlist_matcher import cli
from playlist_matcher.history import MatchHistoryStore
from playlist_matcher.matching.matcher import GenreMatcher
from playlist_matcher.settings import SettingsStore
from playlist_matcher.sync import SyncService

runner = CliRunner()


@pytest.fixture()
def services(monkeypatch, library, storage):
    matcher = GenreMatcher(library)
    wired = SimpleNamespace(
        provider=library,
        matcher=matcher,
        sync_service=SyncService(
            matcher=matcher,
            history=MatchHistoryStore(storage),
            settings=SettingsStore(storage),
        ),
    )
    monkeypatch.setattr(cli, "_services", lambda: wired)
    return wired


def test_match_command_lists_matches(services):
    result = runner.invoke(cli.app, ["match", "--threshold", "0.2"])

    assert result.exit_code == 0
    assert "Matched: 2 songs" in result.output
    assert "-> Rock" in result.output
    assert "Unmatched Songs" in result.output


def test_organize_command_previews_by_default(services):
    result = runner.invoke(cli.app, ["organize", "--threshold", "0.2"])

    assert result.exit_code == 0
    assert "Would add to playlists" in result.output
    assert services.provider.added == {}


def test_organize_command_applies(services):
    result = runner.invoke(cli.app, ["organize", "--threshold", "0.2", "--apply"])

    assert result.exit_code == 0
    assert set(services.provider.added) == {"rock-pl", "jazz-pl"}


def test_sync_command(services):
    result = runner.invoke(cli.app, ["sync"])

    assert result.exit_code == 0
    assert "2 added, 0 already matched, 1 unmatched" in result.output


def test_commands_fail_without_login(services):
    services.provider._token_ready = False

    result = runner.invoke(cli.app, ["match"])

    assert result.exit_code == 1
