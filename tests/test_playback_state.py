"""Tests for the per-session playback state keeper."""

import pytest

from tabletop_audio.domain.library.value_objects import ItemRef
from tabletop_audio.domain.playback.entities import PlaybackStateKeeper
from tabletop_audio.domain.playback.value_objects import AudioCategory, is_valid_volume
from tabletop_audio.domain.shared.exceptions import NotFoundError, ValidationError
from tabletop_audio.domain.sync.events import AudioEvent, AudioEventPayload, AudioEventType


@pytest.fixture
def keeper():
    return PlaybackStateKeeper("table-1")


@pytest.fixture
def received(keeper):
    events = []
    keeper.subscribe(events.append)
    return events


class TestVolume:
    """Tests for set_volume."""

    @pytest.mark.parametrize("level", [-0.1, 1.1, float("nan"), float("inf")])
    def test_out_of_range_rejected(self, keeper, received, level):
        """Should reject out-of-range levels without emitting."""
        assert keeper.set_volume(AudioCategory.SFX, level) is False
        assert received == []
        assert keeper.state.volume(AudioCategory.SFX) == 1.0

    def test_valid_level_emits_once(self, keeper, received):
        """Should emit exactly one VOLUME_CHANGE."""
        assert keeper.set_volume(AudioCategory.SFX, 0.5) is True
        assert len(received) == 1
        event = received[0]
        assert event.type == AudioEventType.VOLUME_CHANGE
        assert event.payload.category == AudioCategory.SFX
        assert event.payload.level == 0.5
        assert keeper.state.volume(AudioCategory.SFX) == 0.5

    @pytest.mark.parametrize("level", [0.0, 1.0])
    def test_bounds_inclusive(self, keeper, level):
        """Should accept the bounds."""
        assert keeper.set_volume(AudioCategory.PLAYLIST, level)

    def test_is_valid_volume_non_numbers(self):
        """Should treat non-numbers as invalid."""
        assert not is_valid_volume("loud")
        assert not is_valid_volume(None)

    def test_unknown_category_is_validation_error(self, keeper, received):
        """Should raise ValidationError for a category outside the closed set."""
        with pytest.raises(ValidationError) as exc_info:
            keeper.set_volume("music", 0.5)

        assert exc_info.value.field == "category"
        assert received == []

    def test_category_accepts_wire_value(self, keeper):
        """Should accept the plain string form of a category."""
        assert keeper.set_volume("ambience", 0.3)
        assert keeper.state.volume(AudioCategory.AMBIENCE) == 0.3


class TestActive:
    """Tests for set_active and set_playlist_state."""

    @pytest.mark.asyncio
    async def test_set_active_emits_selection_event(self, keeper, received):
        """Should emit the category's selection event."""
        event = await keeper.set_active(AudioCategory.AMBIENCE, "collection:4")
        assert event.type == AudioEventType.AMBIENCE_CHANGE
        assert keeper.state.active_item(AudioCategory.AMBIENCE) == ItemRef.collection(4)
        assert received == [event]

    @pytest.mark.asyncio
    async def test_clear_active(self, keeper):
        """Should clear the active item with None."""
        await keeper.set_active(AudioCategory.PLAYLIST, ItemRef.collection(1))
        event = await keeper.set_active(AudioCategory.PLAYLIST, None)
        assert event.payload.item_ref is None
        assert keeper.state.active_item(AudioCategory.PLAYLIST) is None

    @pytest.mark.asyncio
    async def test_resolver_not_found(self, received):
        """Should propagate NotFoundError and leave state untouched."""

        async def resolver(ref):
            raise NotFoundError(ref.kind.value, ref.id)

        keeper = PlaybackStateKeeper("table-1", resolver=resolver)
        keeper.subscribe(received.append)
        with pytest.raises(NotFoundError):
            await keeper.set_active(AudioCategory.SFX, "file:99")
        assert keeper.state.active_item(AudioCategory.SFX) is None
        assert received == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("item_ref", ["bogus", "file:abc", "folder:1", "file:0", 7])
    async def test_malformed_ref_is_validation_error(self, keeper, received, item_ref):
        """Should raise ValidationError for a malformed item reference."""
        with pytest.raises(ValidationError) as exc_info:
            await keeper.set_active(AudioCategory.PLAYLIST, item_ref)

        assert exc_info.value.field == "item_ref"
        assert keeper.state.active_item(AudioCategory.PLAYLIST) is None
        assert received == []

    @pytest.mark.asyncio
    async def test_unknown_category_on_set_active(self, keeper):
        """Should raise ValidationError for an unknown category."""
        with pytest.raises(ValidationError):
            await keeper.set_active("jukebox", "file:1")

    def test_playlist_state_only_emits_on_change(self, keeper, received):
        """Should emit only when the flag flips."""
        assert keeper.set_playlist_state(False) is None
        event = keeper.set_playlist_state(True)
        assert event.type == AudioEventType.PLAYLIST_STATE_CHANGE
        assert event.payload.playing is True
        assert keeper.set_playlist_state(True) is None
        assert len(received) == 1


class TestApply:
    """Tests for applying remote events."""

    def test_apply_volume(self, keeper, received):
        """Should update state and notify listeners."""
        event = AudioEvent(
            type=AudioEventType.VOLUME_CHANGE,
            payload=AudioEventPayload(session_id="table-1", category="ambience", level=0.2),
        )
        assert keeper.apply(event)
        assert keeper.state.volume(AudioCategory.AMBIENCE) == 0.2
        assert received == [event]

    def test_apply_ignores_other_sessions(self, keeper, received):
        """Should ignore events addressed to another session."""
        event = AudioEvent(
            type=AudioEventType.VOLUME_CHANGE,
            payload=AudioEventPayload(session_id="table-2", category="sfx", level=0.2),
        )
        assert keeper.apply(event) is False
        assert keeper.state.volume(AudioCategory.SFX) == 1.0
        assert received == []

    def test_apply_selection_and_playlist_state(self, keeper):
        """Should track selections and the playlist flag."""
        keeper.apply(
            AudioEvent(
                type=AudioEventType.SFX_PLAY,
                payload=AudioEventPayload(session_id="table-1", item_ref="file:7"),
            )
        )
        keeper.apply(
            AudioEvent(
                type=AudioEventType.PLAYLIST_STATE_CHANGE,
                payload=AudioEventPayload(session_id="table-1", playing=True),
            )
        )
        state = keeper.state
        assert state.active_item(AudioCategory.SFX) == ItemRef.file(7)
        assert state.playlist_playing is True

    def test_listener_errors_are_contained(self, keeper, received):
        """Should keep notifying after a listener raises."""

        def broken(event):
            raise RuntimeError("boom")

        keeper.unsubscribe(received.append)
        keeper.subscribe(broken)
        keeper.subscribe(received.append)
        keeper.set_volume(AudioCategory.SFX, 0.3)
        assert len(received) == 1

    def test_state_is_a_copy(self, keeper):
        """Should hand out copies of the state."""
        keeper.state.volumes[AudioCategory.SFX] = 0.0
        assert keeper.state.volume(AudioCategory.SFX) == 1.0
