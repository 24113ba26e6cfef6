"""
Persistent JSON document store for release-bot.

All bot state lives in two small JSON files inside the data directory:

    store.json:
        {
            "artists": [{"id": "...", "name": "..."}],
            "last_checked": "2024-03-15T08:00:00+00:00",
            "active_playlist_id": "37i9dQZF1DXcBWIGoYBM5M",
            "presets": {"Rock": [{"id": "...", "name": "..."}]}
        }

    tokens.json:
        {"access_token": "...", "refresh_token": "...", "expires_at": 1710489600000}

Every mutation is a read-modify-write of the whole document, protected by
a process-local lock. There is no cross-process locking: if two processes
write concurrently, the last writer wins.

Each persisted collection has its own small record class over a shared
JsonDocument:
    ArtistStore        - tracked artists
    CheckpointStore    - instant of the last successful incremental scan
    PlaylistSelection  - active playlist with fallback to the configured default
    PresetStore        - named artist-list snapshots
    CredentialStore    - OAuth token state (separate file, mode 0600)

Usage:
    document = JsonDocument(config.storage.store_path)
    artists = ArtistStore(document)
    artists.add(Artist(id="...", name="..."))
"""

import json
import os
import threading
from pathlib import Path
from typing import Any, Callable, TypeVar

from release_bot.core.exceptions import PreconditionError, StoreError
from release_bot.core.logger import get_logger
from release_bot.spotify.models import Artist, TokenState


logger = get_logger(__name__)

T = TypeVar("T")

ARTISTS_KEY = "artists"
LAST_CHECKED_KEY = "last_checked"
ACTIVE_PLAYLIST_KEY = "active_playlist_id"
PRESETS_KEY = "presets"


class JsonDocument:
    """
    A whole-file JSON document with lock-protected read-modify-write.

    A missing file reads as an empty document. A file that exists but
    does not contain a JSON object raises StoreError.

    Attributes:
        path: Location of the JSON file.
        file_mode: Optional permission bits applied after each write.
    """

    def __init__(self, path: Path, file_mode: int | None = None) -> None:
        self.path = path
        self.file_mode = file_mode
        self._lock = threading.Lock()

    def read(self) -> dict[str, Any]:
        """Return a fresh copy of the whole document."""
        with self._lock:
            return self._load()

    def update(self, mutate: Callable[[dict[str, Any]], T]) -> T:
        """
        Apply mutate to the document and write it back.

        Args:
            mutate: Receives the loaded document, modifies it in place and
                    returns a value that is passed back to the caller.

        Returns:
            Whatever mutate returned.

        Raises:
            StoreError: If the file cannot be read, parsed or written.
        """
        with self._lock:
            data = self._load()
            result = mutate(data)
            self._write(data)
            return result

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise StoreError(
                f"Store file corrupted: {self.path}",
                details={"file_path": str(self.path), "original_error": str(e)}
            ) from e
        except OSError as e:
            raise StoreError(
                f"Failed to read store file: {e}",
                details={"file_path": str(self.path), "original_error": str(e)}
            ) from e

        if not isinstance(data, dict):
            raise StoreError(
                f"Store file must contain a JSON object: {self.path}",
                details={"file_path": str(self.path)}
            )
        return data

    def _write(self, data: dict[str, Any]) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            if self.file_mode is not None:
                os.chmod(tmp_path, self.file_mode)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StoreError(
                f"Failed to write store file: {e}",
                details={"file_path": str(self.path), "original_error": str(e)}
            ) from e


def _artists_from(raw: Any) -> list[Artist]:
    return [Artist.from_dict(entry) for entry in raw or [] if isinstance(entry, dict) and entry.get("id")]


class ArtistStore:
    """Tracked artists, unique by id, kept in insertion order."""

    def __init__(self, document: JsonDocument) -> None:
        self._document = document

    def all(self) -> list[Artist]:
        return _artists_from(self._document.read().get(ARTISTS_KEY))

    def add(self, artist: Artist) -> bool:
        """
        Track an artist.

        Returns:
            False if an artist with the same id is already tracked.
        """
        return self.add_many([artist]) == 1

    def add_many(self, artists: list[Artist]) -> int:
        """
        Track several artists in one write, skipping already-tracked ids.

        Returns:
            Number of artists actually added.
        """
        def mutate(data: dict[str, Any]) -> int:
            current = data.setdefault(ARTISTS_KEY, [])
            known = {entry.get("id") for entry in current}
            added = 0
            for artist in artists:
                if artist.id in known:
                    continue
                current.append(artist.to_dict())
                known.add(artist.id)
                added += 1
            return added

        return self._document.update(mutate)

    def remove(self, artist_id: str) -> Artist | None:
        """
        Stop tracking an artist.

        Returns:
            The removed artist, or None if the id was not tracked.
        """
        def mutate(data: dict[str, Any]) -> Artist | None:
            current = data.setdefault(ARTISTS_KEY, [])
            for index, entry in enumerate(current):
                if entry.get("id") == artist_id:
                    return Artist.from_dict(current.pop(index))
            return None

        return self._document.update(mutate)

    def replace_all(self, artists: list[Artist]) -> None:
        """Replace the whole tracked list (used when applying a preset)."""
        def mutate(data: dict[str, Any]) -> None:
            data[ARTISTS_KEY] = [artist.to_dict() for artist in artists]

        self._document.update(mutate)


class CheckpointStore:
    """ISO-8601 instant of the last successful incremental scan."""

    def __init__(self, document: JsonDocument) -> None:
        self._document = document

    def get(self) -> str | None:
        return self._document.read().get(LAST_CHECKED_KEY)

    def set(self, instant: str) -> None:
        def mutate(data: dict[str, Any]) -> None:
            data[LAST_CHECKED_KEY] = instant

        self._document.update(mutate)


class PlaylistSelection:
    """
    The playlist new tracks are written to.

    The active selection (chosen with `select-playlist`) overrides the
    configured default playlist.
    """

    def __init__(self, document: JsonDocument, default_playlist_id: str | None = None) -> None:
        self._document = document
        self._default_playlist_id = default_playlist_id

    def get(self) -> str | None:
        return self._document.read().get(ACTIVE_PLAYLIST_KEY) or self._default_playlist_id

    def set(self, playlist_id: str) -> None:
        def mutate(data: dict[str, Any]) -> None:
            data[ACTIVE_PLAYLIST_KEY] = playlist_id

        self._document.update(mutate)

    def require(self) -> str:
        """
        Return the target playlist id.

        Raises:
            PreconditionError: If no playlist is selected and no default is configured.
        """
        playlist_id = self.get()
        if not playlist_id:
            raise PreconditionError(
                "No target playlist. Run 'release-bot select-playlist' "
                "or set TARGET_PLAYLIST_ID."
            )
        return playlist_id


class PresetStore:
    """Named snapshots of the tracked-artist list."""

    def __init__(self, document: JsonDocument, artist_store: ArtistStore) -> None:
        self._document = document
        self._artist_store = artist_store

    def all(self) -> dict[str, list[Artist]]:
        raw = self._document.read().get(PRESETS_KEY) or {}
        return {name: _artists_from(entries) for name, entries in raw.items()}

    def save(self, name: str, artists: list[Artist]) -> None:
        """Create or overwrite a preset."""
        if not name.strip():
            raise PreconditionError("Preset name must not be empty")

        def mutate(data: dict[str, Any]) -> None:
            presets = data.setdefault(PRESETS_KEY, {})
            presets[name.strip()] = [artist.to_dict() for artist in artists]

        self._document.update(mutate)

    def delete(self, name: str) -> bool:
        def mutate(data: dict[str, Any]) -> bool:
            presets = data.setdefault(PRESETS_KEY, {})
            return presets.pop(name, None) is not None

        return self._document.update(mutate)

    def apply(self, name: str) -> list[Artist]:
        """
        Replace the live tracked-artist list with a preset.

        Returns:
            The artists now being tracked.

        Raises:
            PreconditionError: If the preset does not exist.
        """
        presets = self.all()
        if name not in presets:
            raise PreconditionError(
                f"Unknown preset: {name}",
                details={"available": sorted(presets)}
            )
        artists = presets[name]
        self._artist_store.replace_all(artists)
        logger.info(f"Loaded preset '{name}' ({len(artists)} artists)")
        return artists


class CredentialStore:
    """OAuth token state in its own owner-only file."""

    def __init__(self, path: Path) -> None:
        self._document = JsonDocument(path, file_mode=0o600)

    @property
    def path(self) -> Path:
        return self._document.path

    def load(self) -> TokenState | None:
        data = self._document.read()
        if not data:
            return None
        try:
            return TokenState.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(
                f"Token file is malformed: {self.path}",
                details={"file_path": str(self.path), "original_error": str(e)}
            ) from e

    def save(self, state: TokenState) -> None:
        def mutate(data: dict[str, Any]) -> None:
            data.clear()
            data.update(state.to_dict())

        self._document.update(mutate)
