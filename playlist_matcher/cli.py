"""Command-line entry points: run the web service or a one-off match."""

import asyncio
from typing import Annotated, Any, Coroutine

import typer
import uvicorn

from playlist_matcher.app import Services, build_services, create_app
from playlist_matcher.config import MATCH_LIMITS, AppConfig
from playlist_matcher.errors import OAuthError, PlaylistMatcherError
from playlist_matcher.log import setup_logging
from playlist_matcher.matching.matcher import MatchOutcome, OrganizeOutcome

app = typer.Typer(help="Recommend owned playlists for your liked songs")

LikedOption = Annotated[int, typer.Option("--liked", "-l", help="Liked songs to consider")]
PlaylistOption = Annotated[int, typer.Option("--playlists", "-p", help="Playlists to consider")]
ThresholdOption = Annotated[float, typer.Option("--threshold", "-t", help="Minimum match score")]


def _services() -> Services:
    config = AppConfig()
    setup_logging(config.log_level)
    return build_services(config)


async def _require_auth(services: Services) -> None:
    if not await services.provider.token_ready():
        raise OAuthError("Not authenticated with Spotify. Run `playlist-matcher serve` and open /auth/spotify/start.")


def _print_unmatched(outcome: MatchOutcome | OrganizeOutcome) -> None:
    if not outcome.unmatched:
        return
    typer.echo("\n=== Unmatched Songs ===")
    for item in outcome.unmatched:
        typer.echo(f"  - {item.track_name} ({item.artist_names}): {item.reason}")


def _run(coro: Coroutine[Any, Any, None]) -> None:
    try:
        asyncio.run(coro)
    except PlaylistMatcherError as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc


@app.command()
def serve(
    host: Annotated[str | None, typer.Option(help="Bind address")] = None,
    port: Annotated[int | None, typer.Option(help="Bind port")] = None,
) -> None:
    """Run the REST API and the scheduled sync loop."""
    config = AppConfig()
    if host:
        config.host = host
    if port:
        config.port = port
    uvicorn.run(create_app(config), host=config.host, port=config.port)


@app.command()
def match(
    liked: LikedOption = 20,
    playlists: PlaylistOption = 10,
    threshold: ThresholdOption = MATCH_LIMITS.match_threshold,
) -> None:
    """Show the best playlist for each liked song without changing anything."""

    async def _match() -> None:
        services = _services()
        await _require_auth(services)
        outcome = await services.matcher.match(
            MATCH_LIMITS.liked(liked), MATCH_LIMITS.playlists(playlists), MATCH_LIMITS.threshold(threshold)
        )
        typer.echo(f"Matched: {len(outcome.matches)} songs")
        for result in outcome.matches:
            typer.echo(f"  {result.score:.2f}  {result.track_name} - {result.artist_names} -> {result.playlist_name}")
        _print_unmatched(outcome)

    _run(_match())


@app.command()
def organize(
    liked: LikedOption = 20,
    playlists: PlaylistOption = 20,
    threshold: ThresholdOption = MATCH_LIMITS.scheduled_threshold,
    apply: Annotated[bool, typer.Option("--apply", help="Add tracks instead of previewing")] = False,
) -> None:
    """Group matches by playlist and optionally add them."""

    async def _organize() -> None:
        services = _services()
        await _require_auth(services)
        user = await services.provider.current_user()
        typer.echo(f"Authenticated as: {user.display_name or user.id}")
        outcome = await services.matcher.auto_organize(
            MATCH_LIMITS.liked(liked),
            MATCH_LIMITS.playlists(playlists),
            MATCH_LIMITS.threshold(threshold),
            dry_run=not apply,
        )
        typer.echo(f"\nMatched: {len(outcome.matches)} songs")
        typer.echo(f"Unmatched: {len(outcome.unmatched)} songs")
        title = "Would add to playlists" if outcome.dry_run else "Playlists"
        typer.echo(f"\n=== {title} ===")
        for addition in outcome.added:
            suffix = f" (failed: {addition.error})" if addition.error else ""
            typer.echo(f"\n{addition.playlist_name}{suffix}:")
            for label in addition.tracks:
                typer.echo(f"  - {label}")
        _print_unmatched(outcome)

    _run(_organize())


@app.command()
def sync() -> None:
    """Add new matches for the signed-in user and record them in the match history."""

    async def _sync() -> None:
        services = _services()
        await _require_auth(services)
        user = await services.provider.current_user()
        result = await services.sync_service.sync(
            user.id,
            playlist_limit=MATCH_LIMITS.scheduled_playlist_limit,
            threshold=MATCH_LIMITS.scheduled_threshold,
        )
        typer.echo(
            f"{result.matches_added} added, {result.already_matched} already matched, "
            f"{result.unmatched} unmatched"
        )
        for name in result.playlists:
            typer.echo(f"  - {name}")

    _run(_sync())


if __name__ == "__main__":
    app()
