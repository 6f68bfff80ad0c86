"""Tests for matching, offset calculation, linking and retention (pure functions)."""

from __future__ import annotations

from datetime import timedelta

import pytest

from clip_todo.reconciliation.linker import link_captures_to_vod
from clip_todo.reconciliation.matcher import (
    calculate_vod_offset,
    match_by_session_id,
    match_by_time_window,
    matches,
    select_vod,
)
from clip_todo.reconciliation.models import (
    SourceType,
    VodDescriptor,
    VodDescriptorWithSessionId,
)
from clip_todo.reconciliation.retention import DEFAULT_RETENTION_DAYS, should_purge
from tests.helpers import T0, at, make_capture

VOD = VodDescriptor(vod_id="v1", streamer_id="foo", started_at=T0, duration_seconds=3600)
SESSION_VOD = VodDescriptorWithSessionId(
    vod_id="v1", streamer_id="foo", started_at=T0, duration_seconds=3600, stream_id="abc"
)


# ---------------------------------------------------------------------------
# Time-window match
# ---------------------------------------------------------------------------


class TestTimeWindowMatch:
    def test_inside_window(self) -> None:
        assert match_by_time_window(make_capture(recorded_at=at(130)), VOD)

    def test_start_boundary_inclusive(self) -> None:
        assert match_by_time_window(make_capture(recorded_at=T0), VOD)

    def test_end_boundary_inclusive(self) -> None:
        assert match_by_time_window(make_capture(recorded_at=at(3600)), VOD)

    def test_one_second_past_end(self) -> None:
        assert not match_by_time_window(make_capture(recorded_at=at(3601)), VOD)

    def test_before_start(self) -> None:
        assert not match_by_time_window(make_capture(recorded_at=at(-1)), VOD)

    def test_different_streamer(self) -> None:
        other = VodDescriptor(vod_id="v2", streamer_id="bar", started_at=T0, duration_seconds=3600)
        assert not match_by_time_window(make_capture(recorded_at=at(130)), other)

    def test_vod_source_never_matches(self) -> None:
        capture = make_capture(
            source_type=SourceType.VOD, vod_id="v0", vod_offset_seconds=5, recorded_at=at(10)
        )
        assert not match_by_time_window(capture, VOD)
        assert not matches(capture, VOD)


# ---------------------------------------------------------------------------
# Session-id match
# ---------------------------------------------------------------------------


class TestSessionIdMatch:
    def test_exact_equality(self) -> None:
        assert match_by_session_id(make_capture(broadcast_id="abc"), SESSION_VOD)

    def test_no_time_heuristic(self) -> None:
        """A session match holds even when recorded_at is outside the window."""
        capture = make_capture(broadcast_id="abc", recorded_at=at(99999))
        assert match_by_session_id(capture, SESSION_VOD)

    @pytest.mark.parametrize("broadcast_id", ["ABC", "ab", "abcd", " abc", "xabc"])
    def test_variations_do_not_match(self, broadcast_id: str) -> None:
        assert not match_by_session_id(make_capture(broadcast_id=broadcast_id), SESSION_VOD)

    def test_missing_broadcast_id(self) -> None:
        assert not match_by_session_id(make_capture(broadcast_id=None), SESSION_VOD)

    def test_different_streamer(self) -> None:
        capture = make_capture(streamer_id="bar", broadcast_id="abc")
        assert not match_by_session_id(capture, SESSION_VOD)

    def test_vod_source_never_matches(self) -> None:
        capture = make_capture(
            source_type=SourceType.VOD, broadcast_id="abc", vod_id="v0", vod_offset_seconds=0
        )
        assert not match_by_session_id(capture, SESSION_VOD)

    def test_mismatched_session_does_not_fall_back_to_window(self) -> None:
        capture = make_capture(broadcast_id="zzz", recorded_at=at(10))
        assert not matches(capture, SESSION_VOD)

    def test_no_broadcast_id_falls_back_to_window(self) -> None:
        assert matches(make_capture(broadcast_id=None, recorded_at=at(10)), SESSION_VOD)


# ---------------------------------------------------------------------------
# Offset
# ---------------------------------------------------------------------------


class TestVodOffset:
    def test_whole_seconds(self) -> None:
        assert calculate_vod_offset(make_capture(recorded_at=at(130)), T0) == 130

    def test_floors_fraction(self) -> None:
        capture = make_capture(recorded_at=T0 + timedelta(seconds=130, milliseconds=999))
        assert calculate_vod_offset(capture, T0) == 130

    def test_clamped_at_zero(self) -> None:
        assert calculate_vod_offset(make_capture(recorded_at=at(-30)), T0) == 0

    def test_zero_at_start(self) -> None:
        assert calculate_vod_offset(make_capture(recorded_at=T0), T0) == 0


# ---------------------------------------------------------------------------
# Linker
# ---------------------------------------------------------------------------


class TestLinker:
    def test_single_link_with_offset(self) -> None:
        capture = make_capture(recorded_at=at(130))
        linked = link_captures_to_vod([capture], VOD)
        assert len(linked) == 1
        assert linked[0].capture is capture
        assert linked[0].vod_offset_seconds == 130

    def test_other_streamer_excluded(self) -> None:
        vod = VodDescriptor(vod_id="v2", streamer_id="bar", started_at=T0, duration_seconds=3600)
        assert link_captures_to_vod([make_capture(recorded_at=at(130))], vod) == []

    def test_mixed_precise_and_window(self) -> None:
        precise = make_capture(broadcast_id="abc", recorded_at=at(60))
        window = make_capture(broadcast_id=None, recorded_at=at(120))
        linked = link_captures_to_vod([precise, window], SESSION_VOD)
        assert [lc.capture.id for lc in linked] == [precise.id, window.id]
        assert [lc.vod_offset_seconds for lc in linked] == [60, 120]

    def test_order_preserved_and_non_matches_dropped(self) -> None:
        captures = [
            make_capture(recorded_at=at(300)),
            make_capture(recorded_at=at(5000)),
            make_capture(recorded_at=at(100)),
        ]
        linked = link_captures_to_vod(captures, VOD)
        assert [lc.capture.id for lc in linked] == [captures[0].id, captures[2].id]

    def test_idempotent(self) -> None:
        captures = [make_capture(recorded_at=at(s)) for s in (0, 50, 3600, 3601)]
        assert link_captures_to_vod(captures, VOD) == link_captures_to_vod(captures, VOD)

    def test_empty_input(self) -> None:
        assert link_captures_to_vod([], VOD) == []


# ---------------------------------------------------------------------------
# Catalog selection
# ---------------------------------------------------------------------------


class TestSelectVod:
    def test_narrowest_window_wins(self) -> None:
        wide = VodDescriptor(vod_id="wide", streamer_id="foo", started_at=T0, duration_seconds=7200)
        narrow = VodDescriptor(
            vod_id="narrow", streamer_id="foo", started_at=at(60), duration_seconds=600
        )
        assert select_vod(make_capture(recorded_at=at(120)), [wide, narrow]) is narrow

    def test_tie_goes_to_most_recent(self) -> None:
        a = VodDescriptor(vod_id="a", streamer_id="foo", started_at=T0, duration_seconds=3600)
        b = VodDescriptor(vod_id="b", streamer_id="foo", started_at=at(3600), duration_seconds=3600)
        # Back-to-back windows share the boundary instant.
        assert select_vod(make_capture(recorded_at=at(3600)), [a, b]) is b

    def test_session_match_beats_window(self) -> None:
        window = VodDescriptor(vod_id="w", streamer_id="foo", started_at=T0, duration_seconds=60)
        session = VodDescriptorWithSessionId(
            vod_id="s",
            streamer_id="foo",
            started_at=at(-7200),
            duration_seconds=10000,
            stream_id="abc",
        )
        capture = make_capture(broadcast_id="abc", recorded_at=at(30))
        assert select_vod(capture, [window, session]) is session

    def test_no_candidate(self) -> None:
        assert select_vod(make_capture(recorded_at=at(99999)), [VOD]) is None


# ---------------------------------------------------------------------------
# Retention
# ---------------------------------------------------------------------------


class TestRetention:
    def test_default_threshold(self) -> None:
        assert DEFAULT_RETENTION_DAYS == 60

    def test_61_days_purged(self) -> None:
        now = T0 + timedelta(days=61)
        assert should_purge(make_capture(), now, 60)

    def test_59_days_retained(self) -> None:
        now = T0 + timedelta(days=59)
        assert not should_purge(make_capture(), now, 60)

    def test_exactly_threshold_retained(self) -> None:
        now = T0 + timedelta(days=60)
        assert not should_purge(make_capture(), now, 60)

    def test_age_from_recorded_at_not_revision(self) -> None:
        """Re-processing (bumped revision, new link) does not reset the clock."""
        capture = make_capture(vod_id="v1", vod_offset_seconds=0, revision=7)
        assert should_purge(capture, T0 + timedelta(days=61), 60)

    def test_linked_purged_by_default(self) -> None:
        linked = make_capture(vod_id="v1", vod_offset_seconds=10)
        assert should_purge(linked, T0 + timedelta(days=61), 60)

    def test_linked_exempt_when_configured(self) -> None:
        linked = make_capture(vod_id="v1", vod_offset_seconds=10)
        pending = make_capture()
        now = T0 + timedelta(days=61)
        assert not should_purge(linked, now, 60, exempt_linked=True)
        assert should_purge(pending, now, 60, exempt_linked=True)
