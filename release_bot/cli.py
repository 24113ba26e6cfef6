"""
Command-line interface for release-bot.

This module implements the CLI using Click, providing every bot
operation as a subcommand. rich-click is used for the output colors.

Commands:
    release-bot auth                        Authorize with Spotify (once)
    release-bot status                      Show auth, artists, playlist, checkpoint
    release-bot add-artist <query>          Search an artist and track it
    release-bot remove-artist [<id>]        Stop tracking an artist
    release-bot artists                     List tracked artists
    release-bot import-followed             Track artists you follow on Spotify
    release-bot playlists                   List your playlists
    release-bot select-playlist [<id|url>]  Choose the target playlist
    release-bot add-all [--type] [--from] [--to]
                                            Add full catalogs to the playlist
    release-bot sync                        Add every missing track
    release-bot scan                        Scan for new releases now
    release-bot shuffle                     Shuffle the target playlist
    release-bot run                         Scan now and every N hours (24/7 mode)
    release-bot presets list|save|load|delete
                                            Manage saved artist lists

Configuration:
    Credentials come from the environment (or a .env file):
    SPOTIFY_CLIENT_ID, SPOTIFY_CLIENT_SECRET. Other settings can be put
    in config.yaml in the current directory (see core/config.py).

Exit Codes:
    0 success, 1 configuration, 2 store, 3 Spotify, 4 precondition,
    5 other bot error, 130 interrupted.
"""

import sys
from pathlib import Path
from typing import Callable, Optional

import rich_click as click

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100
click.rich_click.COMMAND_GROUPS = {
    "cli": [
        {
            "name": "Setup",
            "commands": ["auth", "status", "playlists", "select-playlist"],
        },
        {
            "name": "Artists",
            "commands": ["add-artist", "remove-artist", "artists", "import-followed", "presets"],
        },
        {
            "name": "Playlist",
            "commands": ["scan", "add-all", "sync", "shuffle", "run"],
        },
    ],
}

from release_bot import __version__
from release_bot.catalog.dates import ReleaseType, ScanFilter
from release_bot.catalog.orchestrator import RunSummary, ScanOrchestrator
from release_bot.catalog.reconciler import PlaylistReconciler
from release_bot.catalog.scanner import CatalogScanner
from release_bot.core import (
    ArtistStore,
    CheckpointStore,
    Config,
    ConfigError,
    CredentialStore,
    JsonDocument,
    PlaylistSelection,
    PreconditionError,
    PresetStore,
    ReleaseBotError,
    SpotifyError,
    StoreError,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from release_bot.core.exceptions import UnauthenticatedError
from release_bot.scheduler import Scheduler
from release_bot.spotify import (
    Artist,
    CatalogClient,
    RetryingCaller,
    TokenGuard,
    TokenRefresher,
    authorize,
)
from release_bot.utils import extract_playlist_id, format_duration, parse_selection

logger = get_logger(__name__)


class BotContext:
    """
    Wires configuration, stores and Spotify access for one CLI invocation.

    The Spotify client is built lazily so that offline commands (artists,
    presets) work without credentials.
    """

    def __init__(self, config: Config) -> None:
        self.config = config
        document = JsonDocument(config.storage.store_path)
        self.artists = ArtistStore(document)
        self.checkpoint = CheckpointStore(document)
        self.selection = PlaylistSelection(document, config.spotify.default_playlist_id)
        self.presets = PresetStore(document, self.artists)
        self.credentials = CredentialStore(config.storage.tokens_path)
        self._token_guard: TokenGuard | None = None
        self._client: CatalogClient | None = None

    def require_credentials(self) -> None:
        self.config.require("spotify.client_id", "spotify.client_secret")

    @property
    def token_guard(self) -> TokenGuard:
        if self._token_guard is None:
            self.require_credentials()
            self._token_guard = TokenGuard(
                self.credentials,
                TokenRefresher(
                    self.config.spotify.client_id,
                    self.config.spotify.client_secret,
                    timeout=self.config.network.request_timeout
                ),
                caller=self._caller()
            )
        return self._token_guard

    @property
    def client(self) -> CatalogClient:
        if self._client is None:
            self._client = CatalogClient(
                self.token_guard,
                self._caller(),
                market=self.config.spotify.market,
                request_timeout=self.config.network.request_timeout
            )
        return self._client

    def orchestrator(self) -> ScanOrchestrator:
        scanner = CatalogScanner(self.client)
        return ScanOrchestrator(
            scanner,
            PlaylistReconciler(self.client, scanner),
            self.artists,
            self.checkpoint,
            self.selection
        )

    def _caller(self) -> RetryingCaller:
        return RetryingCaller(
            attempts=self.config.retry.attempts,
            delay_ms=self.config.retry.delay_ms
        )


@click.group(invoke_without_command=True)
@click.option(
    "--config", "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="Configuration file (default: ./config.yaml if present)"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Show debug messages on the console"
)
@click.option(
    "--version",
    is_flag=True,
    help="Show version and exit."
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool, version: bool) -> None:
    """
    release-bot: Keep a Spotify playlist filled with new releases.

    Tracks a list of artists, scans their catalogs for new releases and
    adds the tracks to a target playlist, skipping anything already there.

    \b
    FIRST RUN:
        release-bot auth                      # Authorize once
        release-bot add-artist "Artist Name"  # Track artists
        release-bot select-playlist           # Choose the target playlist
        release-bot run                       # Scan now and every 12 hours
    """
    if version:
        click.echo(f"release-bot {__version__}")
        ctx.exit(0)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(0)

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


def _run_command(ctx: click.Context, action: Callable[[BotContext], None]) -> None:
    """
    Execute a command body with configuration, logging and error handling.

    Args:
        ctx: Click context carrying the group options.
        action: The command body, receiving the wired BotContext.

    Raises:
        SystemExit: On fatal errors (with appropriate exit code).
    """
    options = ctx.obj or {}

    try:
        config = load_config(options.get("config_path"))
        setup_logging(
            config.logging.directory,
            verbose=options.get("verbose", False) or config.logging.verbose
        )
        action(BotContext(config))

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except StoreError as e:
        click.echo(f"Store error: {e.message}", err=True)
        logger.error(f"Store error: {e.message}", exc_info=True)
        sys.exit(2)

    except SpotifyError as e:
        click.echo(f"Spotify error: {e.message}", err=True)
        if e.is_auth_error and not isinstance(e, UnauthenticatedError):
            click.echo("Run 'release-bot auth' to authorize again", err=True)
        logger.error(f"Spotify error: {e.message}", exc_info=True)
        sys.exit(3)

    except PreconditionError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(4)

    except ReleaseBotError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(5)

    except click.Abort:
        click.echo("\nCancelled", err=True)
        sys.exit(1)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        shutdown_logging()


def _format_artist(index: int, artist: Artist) -> str:
    line = f"{index:3d}. {artist.name}"
    if artist.followers is not None:
        line += f" ({artist.followers:,} followers)"
    if artist.genres:
        line += f" [{', '.join(artist.genres[:3])}]"
    return line


def _print_summary(summary: RunSummary) -> None:
    click.echo(
        f"Added {summary.tracks_added} track(s) "
        f"({summary.tracks_found} found) in {format_duration(summary.duration_seconds)}"
    )
    for failure in summary.failures:
        click.echo(f"  Failed: {failure.artist.name}: {failure.error}", err=True)
        if failure.permanent:
            click.echo(
                f"    The artist id looks invalid. Remove it with: "
                f"release-bot remove-artist {failure.artist.id}",
                err=True
            )


# =========================================================================
# Setup
# =========================================================================

@cli.command()
@click.option("--no-browser", is_flag=True, help="Print the authorization URL instead of opening it")
@click.pass_context
def auth(ctx: click.Context, no_browser: bool) -> None:
    """Authorize release-bot with your Spotify account."""
    def action(bot: BotContext) -> None:
        bot.require_credentials()
        authorize(
            bot.config.spotify,
            bot.credentials,
            open_browser=not no_browser,
            request_timeout=bot.config.network.request_timeout
        )
        click.echo("Authenticated with Spotify.")

    _run_command(ctx, action)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show authentication, tracked artists, target playlist and last scan."""
    def action(bot: BotContext) -> None:
        authenticated = bot.credentials.load() is not None
        click.echo(f"Authenticated:   {'yes' if authenticated else 'no'}")
        click.echo(f"Tracked artists: {len(bot.artists.all())}")
        click.echo(f"Playlist:        {bot.selection.get() or 'not set'}")
        click.echo(f"Last scan:       {bot.checkpoint.get() or 'never'}")
        click.echo(f"Scan interval:   every {bot.config.scheduler.interval_hours:g} hour(s)")

    _run_command(ctx, action)


@cli.command()
@click.pass_context
def playlists(ctx: click.Context) -> None:
    """List your Spotify playlists."""
    def action(bot: BotContext) -> None:
        active = bot.selection.get()
        items = bot.client.list_user_playlists()
        if not items:
            click.echo("No playlists found.")
            return
        for index, playlist in enumerate(items, start=1):
            marker = "*" if playlist.id == active else " "
            click.echo(
                f"{index:3d}.{marker} {playlist.name} ({playlist.total_tracks} tracks) {playlist.id}"
            )

    _run_command(ctx, action)


@cli.command("select-playlist")
@click.argument("playlist", required=False, metavar="<id-or-url>")
@click.pass_context
def select_playlist(ctx: click.Context, playlist: Optional[str]) -> None:
    """Choose the playlist new tracks are added to."""
    def action(bot: BotContext) -> None:
        if playlist:
            try:
                playlist_id = extract_playlist_id(playlist)
            except ValueError as e:
                raise PreconditionError(str(e)) from e
            bot.selection.set(playlist_id)
            click.echo(f"Target playlist set to {playlist_id}")
            return

        items = bot.client.list_user_playlists()
        if not items:
            raise PreconditionError("You have no playlists. Create one in Spotify first.")
        for index, entry in enumerate(items, start=1):
            click.echo(f"{index:3d}. {entry.name} ({entry.total_tracks} tracks)")

        choice = click.prompt("Select playlist number (0 to cancel)", type=click.IntRange(0, len(items)))
        if choice == 0:
            click.echo("Cancelled.")
            return
        selected = items[choice - 1]
        bot.selection.set(selected.id)
        click.echo(f"Target playlist set to {selected.name}")

    _run_command(ctx, action)


# =========================================================================
# Artists
# =========================================================================

@cli.command("add-artist")
@click.argument("query", nargs=-1, required=True)
@click.option("--first", is_flag=True, help="Track the top search result without asking")
@click.pass_context
def add_artist(ctx: click.Context, query: tuple[str, ...], first: bool) -> None:
    """Search for an artist and start tracking it."""
    def action(bot: BotContext) -> None:
        search = " ".join(query)
        results = bot.client.search_artists(search, limit=10)
        if not results:
            click.echo(f"No artists found for '{search}'.")
            return

        if first:
            chosen = results[0]
        else:
            for index, artist in enumerate(results, start=1):
                click.echo(_format_artist(index, artist))
            choice = click.prompt("Select artist number (0 to cancel)", type=click.IntRange(0, len(results)))
            if choice == 0:
                click.echo("Cancelled.")
                return
            chosen = results[choice - 1]

        if bot.artists.add(chosen):
            logger.info(f"Now tracking {chosen.name} ({chosen.id})")
            click.echo(f"Now tracking {chosen.name}.")
        else:
            click.echo(f"{chosen.name} is already tracked.")

    _run_command(ctx, action)


@cli.command("remove-artist")
@click.argument("artist_id", required=False, metavar="<artist-id>")
@click.pass_context
def remove_artist(ctx: click.Context, artist_id: Optional[str]) -> None:
    """Stop tracking an artist (by id, or pick from the list)."""
    def action(bot: BotContext) -> None:
        target_id = artist_id
        if target_id is None:
            tracked = bot.artists.all()
            if not tracked:
                click.echo("No artists tracked.")
                return
            for index, artist in enumerate(tracked, start=1):
                click.echo(_format_artist(index, artist))
            choice = click.prompt("Select artist number (0 to cancel)", type=click.IntRange(0, len(tracked)))
            if choice == 0:
                click.echo("Cancelled.")
                return
            target_id = tracked[choice - 1].id

        removed = bot.artists.remove(target_id)
        if removed is None:
            raise PreconditionError(f"Artist {target_id} is not tracked")
        click.echo(f"Stopped tracking {removed.name}.")

    _run_command(ctx, action)


@cli.command()
@click.pass_context
def artists(ctx: click.Context) -> None:
    """List tracked artists."""
    def action(bot: BotContext) -> None:
        tracked = bot.artists.all()
        if not tracked:
            click.echo("No artists tracked. Add one with: release-bot add-artist <name>")
            return
        click.echo(f"Tracking {len(tracked)} artist(s):")
        for index, artist in enumerate(tracked, start=1):
            click.echo(f"{index:3d}. {artist.name} ({artist.id})")

    _run_command(ctx, action)


@cli.command("import-followed")
@click.option("--all", "import_all", is_flag=True, help="Import every followed artist without asking")
@click.pass_context
def import_followed(ctx: click.Context, import_all: bool) -> None:
    """Track artists you follow on Spotify."""
    def action(bot: BotContext) -> None:
        tracked_ids = {artist.id for artist in bot.artists.all()}
        followed = bot.client.list_followed_artists()
        candidates = [artist for artist in followed if artist.id not in tracked_ids]

        click.echo(
            f"You follow {len(followed)} artist(s), "
            f"{len(followed) - len(candidates)} already tracked."
        )
        if not candidates:
            return

        if import_all:
            selected = candidates
        else:
            for index, artist in enumerate(candidates, start=1):
                click.echo(f"{index:3d}. {artist.name}")
            answer = click.prompt(
                'Select artists ("1 3 5", "1-10", "all" or "none")',
                default="none",
                show_default=False
            )
            try:
                indexes = parse_selection(answer, len(candidates))
            except ValueError as e:
                raise PreconditionError(str(e)) from e
            selected = [candidates[i] for i in indexes]

        if not selected:
            click.echo("No new artists selected.")
            return

        added = bot.artists.add_many(selected)
        click.echo(f"Added {added} new artist(s) to tracking.")

    _run_command(ctx, action)


@cli.group()
def presets() -> None:
    """Save and restore named artist lists."""


@presets.command("list")
@click.pass_context
def presets_list(ctx: click.Context) -> None:
    """List saved presets."""
    def action(bot: BotContext) -> None:
        saved = bot.presets.all()
        if not saved:
            click.echo("No presets saved.")
            return
        for name, members in saved.items():
            click.echo(f"{name} ({len(members)} artists)")

    _run_command(ctx, action)


@presets.command("save")
@click.argument("name")
@click.pass_context
def presets_save(ctx: click.Context, name: str) -> None:
    """Save the tracked artists as a preset (overwrites an existing one)."""
    def action(bot: BotContext) -> None:
        tracked = bot.artists.all()
        if not tracked:
            raise PreconditionError("No artists tracked, nothing to save")
        bot.presets.save(name, tracked)
        click.echo(f"Saved preset '{name}' with {len(tracked)} artist(s).")

    _run_command(ctx, action)


@presets.command("load")
@click.argument("name")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def presets_load(ctx: click.Context, name: str, yes: bool) -> None:
    """Replace the tracked artists with a preset."""
    def action(bot: BotContext) -> None:
        current = len(bot.artists.all())
        if not yes and not click.confirm(
            f"Replace the {current} tracked artist(s) with preset '{name}'?"
        ):
            click.echo("Cancelled.")
            return
        loaded = bot.presets.apply(name)
        click.echo(f"Now tracking {len(loaded)} artist(s) from '{name}'.")

    _run_command(ctx, action)


@presets.command("delete")
@click.argument("name")
@click.pass_context
def presets_delete(ctx: click.Context, name: str) -> None:
    """Delete a preset."""
    def action(bot: BotContext) -> None:
        if not bot.presets.delete(name):
            raise PreconditionError(f"Unknown preset: {name}")
        click.echo(f"Deleted preset '{name}'.")

    _run_command(ctx, action)


# =========================================================================
# Playlist
# =========================================================================

@cli.command()
@click.pass_context
def scan(ctx: click.Context) -> None:
    """Scan for new releases now and add them to the playlist."""
    def action(bot: BotContext) -> None:
        _print_summary(bot.orchestrator().run_scan())

    _run_command(ctx, action)


@cli.command("add-all")
@click.option(
    "--type", "release_type",
    type=click.Choice([member.value for member in ReleaseType], case_sensitive=False),
    default=ReleaseType.EVERYTHING.value,
    show_default=True,
    help="Which releases to include"
)
@click.option("--from", "date_from", default=None, metavar="YYYY-MM-DD", help="Earliest release date (inclusive)")
@click.option("--to", "date_to", default=None, metavar="YYYY-MM-DD", help="Latest release date (inclusive)")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def add_all(
    ctx: click.Context,
    release_type: str,
    date_from: Optional[str],
    date_to: Optional[str],
    yes: bool
) -> None:
    """Add the full catalog of every tracked artist to the playlist."""
    def action(bot: BotContext) -> None:
        scan_filter = ScanFilter.from_strings(release_type, date_from, date_to)
        count = len(bot.artists.all())
        if not yes and not click.confirm(f"Add {scan_filter.describe()} from {count} artist(s)?"):
            click.echo("Cancelled.")
            return
        _print_summary(bot.orchestrator().add_all(scan_filter))

    _run_command(ctx, action)


@cli.command()
@click.pass_context
def sync(ctx: click.Context) -> None:
    """Add every track from tracked artists that is missing from the playlist."""
    def action(bot: BotContext) -> None:
        _print_summary(bot.orchestrator().sync())

    _run_command(ctx, action)


@cli.command()
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def shuffle(ctx: click.Context, yes: bool) -> None:
    """Shuffle the order of the target playlist."""
    def action(bot: BotContext) -> None:
        if not yes and not click.confirm("Shuffle the whole target playlist?"):
            click.echo("Cancelled.")
            return
        summary = bot.orchestrator().shuffle()
        click.echo(f"Shuffled {summary.tracks_found} track(s).")

    _run_command(ctx, action)


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Scan now, then every N hours until stopped (24/7 mode)."""
    def action(bot: BotContext) -> None:
        bot.selection.require()
        if not bot.artists.all():
            raise PreconditionError("No artists tracked. Add artists with 'release-bot add-artist'.")
        if not bot.token_guard.is_authenticated():
            raise UnauthenticatedError()

        scheduler = Scheduler(bot.orchestrator(), interval_hours=bot.config.scheduler.interval_hours)
        scheduler.install_signal_handlers()
        scheduler.run_forever()

    _run_command(ctx, action)


def main() -> None:
    """Entry point for the release-bot console script."""
    cli(obj={})


if __name__ == "__main__":
    main()
