"""Tests for unified ticket aggregation."""

import logging
import random

import pytest

from ticket_sync.integrations.models import (
    ExternalIssue,
    ExternalNote,
    ExternalStatus,
    InternalNote,
    InternalStatus,
    InternalTicket,
    Origin,
)
from ticket_sync.sync.aggregator import TicketFilter, aggregate, status_counts

NOW = 1_800_000_000_000
T = 1_700_000_000_000


def _request(ticket_id: str, created_at=None, updated_at=None, **extra) -> InternalTicket:
    return InternalTicket(
        id=ticket_id,
        user_id=extra.pop("user_id", "u1"),
        user_name="Dana",
        user_email=extra.pop("user_email", "dana@example.com"),
        message=extra.pop("message", "Please help\nMore details"),
        created_at=created_at,
        updated_at=updated_at,
        **extra,
    )


def _issue(ticket_id: str, created_at=None, updated_at=None, **extra) -> ExternalIssue:
    return ExternalIssue(
        id=ticket_id,
        external_issue_id=extra.pop("external_issue_id", 1),
        external_url="https://github.com/acme/widgets/issues/1",
        title=extra.pop("title", "Bug"),
        body="",
        repository="acme/widgets",
        installation_ref="42",
        user_id=extra.pop("user_id", "u2"),
        user_email=extra.pop("user_email", "sam@example.com"),
        created_at=created_at,
        updated_at=updated_at,
        **extra,
    )


class TestProjection:
    """Test projection into the unified shape."""

    def test_ids_are_origin_prefixed(self):
        """Test ids stay unique across origins even when source ids collide."""
        tickets = aggregate([_request("x", 1_700_000_000_000)], [_issue("x", 1_700_000_000_000)], now_ms=NOW)
        assert sorted(t.id for t in tickets) == ["external:x", "internal:x"]
        assert {t.origin for t in tickets} == {Origin.INTERNAL, Origin.EXTERNAL}

    def test_internal_title_from_first_line(self):
        """Test support request titles come from the message's first line."""
        (ticket,) = aggregate([_request("r1", 1_700_000_000_000)], [], now_ms=NOW)
        assert ticket.title == "Please help"
        assert ticket.body == "Please help\nMore details"

    def test_long_title_truncated(self):
        """Test long first lines are shortened."""
        (ticket,) = aggregate([_request("r1", 1_700_000_000_000, message="x" * 200)], [], now_ms=NOW)
        assert len(ticket.title) == 80
        assert ticket.title.endswith("...")

    def test_statuses_stay_raw(self):
        """Test statuses are passed through in their own vocabulary."""
        tickets = aggregate(
            [_request("r1", T, status=InternalStatus.NEW)],
            [_issue("e1", T, status=ExternalStatus.OPEN)],
            now_ms=NOW,
        )
        assert {t.origin: t.status for t in tickets} == {
            Origin.INTERNAL: "new",
            Origin.EXTERNAL: "open",
        }

    def test_notes_projected(self):
        """Test note threads are merged into the unified shape."""
        request = _request(
            "r1",
            1_700_000_000_000,
            notes=[InternalNote(id="n1", author_id="a1", author_name="Ann", message="hi", role="admin")],
        )
        (ticket,) = aggregate([request], [], now_ms=NOW)
        assert ticket.notes[0].author_id == "a1"
        assert ticket.notes[0].role.value == "admin"

    def test_customer_view_hides_internal_notes(self):
        """Test admin-only tracker notes can be excluded."""
        issue = _issue(
            "e1",
            1_700_000_000_000,
            notes=[
                ExternalNote(id="1", author_name="A", author_email="", message="public"),
                ExternalNote(id="2", author_name="A", author_email="", message="secret", is_internal=True),
            ],
        )
        (ticket,) = aggregate([], [issue], now_ms=NOW, include_internal_notes=False)
        assert [note.message for note in ticket.notes] == ["public"]


class TestTimestamps:
    """Test created_at normalization and fallbacks."""

    def test_mixed_shapes_sort_together(self):
        """Test seconds, ms, ISO and store shapes sort on one axis."""
        tickets = aggregate(
            [
                _request("a", 1_700_000_001),  # seconds
                _request("b", {"seconds": 1_700_000_003, "nanoseconds": 0}),
            ],
            [
                _issue("c", "2023-11-14T22:13:22Z"),  # 1_700_000_002 s
                _issue("d", 1_700_000_004_000),  # ms
            ],
            now_ms=NOW,
        )
        assert [t.id for t in tickets] == ["external:d", "internal:b", "external:c", "internal:a"]
        assert tickets[0].created_at == 1_700_000_004_000

    def test_external_created_at_fallback(self):
        """Test the tracker creation time is used when created_at is missing."""
        issue = _issue("e1", None, 1_700_000_009_000, external_created_at="2023-11-14T22:13:20Z")
        (ticket,) = aggregate([], [issue], now_ms=NOW)
        assert ticket.created_at == 1_700_000_000_000

    def test_updated_at_fallback(self):
        """Test updated_at is used when created_at is unusable."""
        (ticket,) = aggregate([_request("r1", "garbage", 1_700_000_000_000)], [], now_ms=NOW)
        assert ticket.created_at == 1_700_000_000_000

    def test_now_fallback_is_logged(self, caplog):
        """Test the now fallback is used and logged as a data-quality warning."""
        with caplog.at_level(logging.WARNING, logger="ticket_sync"):
            (ticket,) = aggregate([_request("r1", None, "nope")], [], now_ms=NOW)
        assert ticket.created_at == NOW
        assert "internal:r1" in caplog.text


class TestOrdering:
    """Test deterministic ordering."""

    def test_newest_first(self):
        """Test tickets are sorted by created_at descending."""
        tickets = aggregate([_request("old", 1_000_000_000_000)], [_issue("new", 1_500_000_000_000)], now_ms=NOW)
        assert [t.id for t in tickets] == ["external:new", "internal:old"]

    def test_ties_broken_by_id(self):
        """Test equal timestamps are ordered by id ascending."""
        tickets = aggregate(
            [_request("b", 1_600_000_000_000), _request("a", 1_600_000_000_000)],
            [_issue("a", 1_600_000_000_000)],
            now_ms=NOW,
        )
        assert [t.id for t in tickets] == ["external:a", "internal:a", "internal:b"]

    def test_input_order_does_not_matter(self):
        """Test shuffled inputs always produce the same output."""
        internal = [_request(f"r{i}", 1_600_000_000_000 + (i % 3)) for i in range(10)]
        external = [_issue(f"e{i}", 1_600_000_000_000 + (i % 4)) for i in range(10)]
        expected = [t.id for t in aggregate(internal, external, now_ms=NOW)]
        rng = random.Random(7)
        for _ in range(5):
            rng.shuffle(internal)
            rng.shuffle(external)
            assert [t.id for t in aggregate(internal, external, now_ms=NOW)] == expected

    def test_does_not_mutate_inputs(self):
        """Test aggregation is pure."""
        internal = [_request("r1", "2024-01-01T00:00:00Z")]
        aggregate(internal, [], now_ms=NOW)
        assert internal[0].created_at == "2024-01-01T00:00:00Z"


class TestFilter:
    """Test filtering."""

    @pytest.fixture
    def tickets_in(self):
        """A mixed set of tickets for two users."""
        internal = [
            _request("r1", 1_700_000_000_000, user_email="dana@example.com", user_id="u1"),
            _request("r2", 1_700_000_000_001, user_email="lee@example.com", user_id="u3",
                     status=InternalStatus.RESOLVED),
        ]
        external = [_issue("e1", 1_700_000_000_002, user_email="sam@example.com", user_id="u2")]
        return internal, external

    def test_empty_filter_keeps_everything(self, tickets_in):
        """Test an empty email set means no filtering."""
        internal, external = tickets_in
        tickets = aggregate(internal, external, TicketFilter.create(user_email=[]), now_ms=NOW)
        assert len(tickets) == 3

    def test_no_filter(self, tickets_in):
        """Test an absent filter keeps everything."""
        internal, external = tickets_in
        assert len(aggregate(internal, external, None, now_ms=NOW)) == 3

    def test_email_filter(self, tickets_in):
        """Test only tickets with a listed email are kept."""
        internal, external = tickets_in
        tickets = aggregate(
            internal,
            external,
            TicketFilter.create(user_email=["dana@example.com", "sam@example.com"]),
            now_ms=NOW,
        )
        assert [t.id for t in tickets] == ["external:e1", "internal:r1"]

    def test_user_id_filter(self, tickets_in):
        """Test filtering by user id."""
        internal, external = tickets_in
        tickets = aggregate(internal, external, TicketFilter.create(user_id="u2"), now_ms=NOW)
        assert [t.id for t in tickets] == ["external:e1"]

    def test_status_and_origin_filter(self, tickets_in):
        """Test filtering by raw status and origin."""
        internal, external = tickets_in
        tickets = aggregate(
            internal,
            external,
            TicketFilter.create(statuses=["resolved", "open"], origin=Origin.INTERNAL),
            now_ms=NOW,
        )
        assert [t.id for t in tickets] == ["internal:r2"]


class TestStatusCounts:
    """Test the status summary."""

    def test_counts_per_origin_and_status(self):
        """Test counts are keyed by origin and raw status."""
        tickets = aggregate(
            [_request("r1", T), _request("r2", T, status=InternalStatus.CLOSED)],
            [_issue("e1", T), _issue("e2", T)],
            now_ms=NOW,
        )
        assert status_counts(tickets) == {
            ("internal", "new"): 1,
            ("internal", "closed"): 1,
            ("external", "open"): 2,
        }
