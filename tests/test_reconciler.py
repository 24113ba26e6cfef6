"""Test duplicate-free playlist writes and shuffling"""

import random
from collections import Counter

import pytest

from release_bot.catalog.reconciler import PlaylistReconciler, missing_uris
from release_bot.catalog.scanner import CatalogScanner
from release_bot.spotify.models import Track
from conftest import make_release


@pytest.fixture
def reconciler(fake_client, clock):
    scanner = CatalogScanner(fake_client, clock=clock, show_progress=False)
    return PlaylistReconciler(fake_client, scanner, rng=random.Random(42))


def tracks(*uris):
    return [Track(uri=uri) for uri in uris]


class TestMissingUris:
    """Test candidate selection"""

    def test_keeps_first_occurrence_order(self):
        seen = {"spotify:track:x"}
        candidates = tracks("spotify:track:b", "spotify:track:x", "spotify:track:a", "spotify:track:b")

        assert missing_uris(candidates, seen) == ["spotify:track:b", "spotify:track:a"]
        assert seen == {"spotify:track:x", "spotify:track:a", "spotify:track:b"}

    def test_skips_missing_tracks_and_uris(self):
        assert missing_uris([None, Track(uri=""), Track(uri="spotify:track:1")], set()) == ["spotify:track:1"]


class TestAddMissing:
    """Test PlaylistReconciler.add_missing"""

    def test_adds_only_new_tracks(self, reconciler, fake_client):
        fake_client.playlists["pl"] = ["spotify:track:1"]

        added = reconciler.add_missing(tracks("spotify:track:1", "spotify:track:2", "spotify:track:2"), "pl")

        assert added == 1
        assert fake_client.append_calls == [("pl", ["spotify:track:2"])]

    def test_no_write_when_nothing_is_new(self, reconciler, fake_client):
        fake_client.playlists["pl"] = ["spotify:track:1"]

        assert reconciler.add_missing(tracks("spotify:track:1"), "pl") == 0
        assert reconciler.add_missing([], "pl") == 0
        assert fake_client.append_calls == []

    def test_running_twice_adds_nothing_the_second_time(self, reconciler, fake_client):
        candidates = tracks("spotify:track:1", "spotify:track:2")

        assert reconciler.add_missing(candidates, "pl") == 2
        assert reconciler.add_missing(candidates, "pl") == 0
        assert fake_client.playlists["pl"] == ["spotify:track:1", "spotify:track:2"]

    def test_removed_playlist_entries_are_ignored(self, reconciler, fake_client):
        fake_client.playlists["pl"] = [""]

        assert reconciler.existing_uris("pl") == set()


class TestSyncAll:
    """Test PlaylistReconciler.sync_all"""

    def test_dedupes_across_artists_with_one_write(self, reconciler, fake_client, artists):
        fake_client.playlists["pl"] = ["spotify:track:old"]
        fake_client.add_release("artist_a", make_release("a1", "2020-01-01"), ["spotify:track:old", "spotify:track:shared"])
        fake_client.add_release("artist_b", make_release("b1", "2021-01-01"), ["spotify:track:shared", "spotify:track:b"])

        result = reconciler.sync_all(artists, "pl")

        assert result.tracks_added == 2
        assert len(result.report.tracks) == 4
        assert fake_client.append_calls == [("pl", ["spotify:track:shared", "spotify:track:b"])]

    def test_failing_artist_is_recorded_and_skipped(self, reconciler, fake_client, artists, not_found_error):
        fake_client.failures["artist_a"] = not_found_error
        fake_client.add_release("artist_b", make_release("b1", "2021-01-01"), ["spotify:track:b"])

        result = reconciler.sync_all(artists, "pl")

        assert result.tracks_added == 1
        (failure,) = result.report.failures
        assert failure.artist.id == "artist_a"
        assert failure.permanent
        assert "404" in failure.error

    def test_already_in_sync(self, reconciler, fake_client, artists):
        fake_client.playlists["pl"] = ["spotify:track:b"]
        fake_client.add_release("artist_b", make_release("b1", "2021-01-01"), ["spotify:track:b"])

        result = reconciler.sync_all(artists, "pl")

        assert result.tracks_added == 0
        assert result.report.failures == []
        assert fake_client.append_calls == []


class TestShuffle:
    """Test PlaylistReconciler.shuffle_and_replace"""

    def test_result_is_a_permutation(self, reconciler, fake_client):
        original = [f"spotify:track:{i}" for i in range(250)]
        fake_client.playlists["pl"] = list(original)

        assert reconciler.shuffle_and_replace("pl") == 250

        (playlist_id, shuffled), = fake_client.replace_calls
        assert playlist_id == "pl"
        assert sorted(shuffled) == sorted(original)
        assert shuffled != original

    def test_empty_playlist_is_not_written(self, reconciler, fake_client):
        assert reconciler.shuffle_and_replace("pl") == 0
        assert fake_client.replace_calls == []

    def test_unavailable_items_are_dropped(self, reconciler, fake_client, caplog):
        fake_client.playlists["pl"] = ["spotify:track:1", "", "spotify:track:2"]

        assert reconciler.shuffle_and_replace("pl") == 2

        (_, shuffled), = fake_client.replace_calls
        assert sorted(shuffled) == ["spotify:track:1", "spotify:track:2"]
        assert "1 unavailable playlist item(s)" in caplog.text

    def test_permutations_are_uniform(self, fake_client, clock):
        scanner = CatalogScanner(fake_client, clock=clock, show_progress=False)
        reconciler = PlaylistReconciler(fake_client, scanner, rng=random.Random(7))
        counts = Counter()

        for _ in range(6000):
            fake_client.playlists["pl"] = ["a", "b", "c"]
            reconciler.shuffle_and_replace("pl")
            counts[tuple(fake_client.playlists["pl"])] += 1

        assert len(counts) == 6
        assert all(800 < count < 1200 for count in counts.values())
