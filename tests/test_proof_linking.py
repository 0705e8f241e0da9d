"""Tests for two-stage proof resolution."""

import threading
from datetime import timedelta

from salestracker.domain.proof_linking import SaleEvent, resolve_proof

from .helpers import T0, InMemoryProofStore, make_proof

SENDER = "5493515551234"
OTHER_SENDER = "5491144443333"


def _event(quoted: str | None = None, sender: str = SENDER, at=T0) -> SaleEvent:
    return SaleEvent(
        sender_id=sender,
        group_id="120363000000000000@g.us",
        arrival_time=at,
        quoted_message_id=quoted,
    )


class TestExplicitReference:
    def test_quoted_proof_is_claimed(self):
        store = InMemoryProofStore([make_proof("abc", received_at=T0 - timedelta(hours=3))])

        proof = resolve_proof(_event(quoted="abc"), store)

        assert proof is not None
        assert proof.source_message_id == "abc"
        assert proof.linked is True
        assert store.proofs["abc"].linked is True

    def test_second_resolution_of_same_quote_returns_none(self):
        store = InMemoryProofStore([make_proof("abc", received_at=T0 - timedelta(hours=3))])

        assert resolve_proof(_event(quoted="abc"), store) is not None
        assert resolve_proof(_event(quoted="abc"), store) is None

    def test_quoted_proof_ignores_window_and_sender(self):
        store = InMemoryProofStore(
            [make_proof("abc", sender_id=OTHER_SENDER, received_at=T0 - timedelta(days=2))]
        )

        proof = resolve_proof(_event(quoted="abc"), store)

        assert proof is not None
        assert proof.source_message_id == "abc"

    def test_unknown_quote_falls_back_to_recent(self):
        store = InMemoryProofStore([make_proof("recent", received_at=T0 - timedelta(minutes=1))])

        proof = resolve_proof(_event(quoted="missing"), store)

        assert proof is not None
        assert proof.source_message_id == "recent"

    def test_already_linked_quote_falls_back_to_recent(self):
        store = InMemoryProofStore(
            [
                make_proof("abc", linked=True),
                make_proof("recent", received_at=T0 - timedelta(minutes=3)),
            ]
        )

        proof = resolve_proof(_event(quoted="abc"), store)

        assert proof.source_message_id == "recent"


class TestTemporalFallback:
    def test_latest_proof_before_report_wins(self):
        store = InMemoryProofStore(
            [
                make_proof("old", received_at=T0 - timedelta(minutes=9)),
                make_proof("new", received_at=T0 - timedelta(minutes=2)),
            ]
        )

        proof = resolve_proof(_event(), store)

        assert proof.source_message_id == "new"
        assert store.proofs["old"].linked is False

    def test_proof_after_report_is_never_selected(self):
        store = InMemoryProofStore([make_proof("later", received_at=T0 + timedelta(minutes=1))])

        assert resolve_proof(_event(), store) is None
        assert store.proofs["later"].linked is False

    def test_proof_after_report_ignored_when_earlier_exists(self):
        store = InMemoryProofStore(
            [
                make_proof("before", received_at=T0 - timedelta(minutes=5)),
                make_proof("after", received_at=T0 + timedelta(minutes=1)),
            ]
        )

        assert resolve_proof(_event(), store).source_message_id == "before"

    def test_same_instant_is_eligible(self):
        store = InMemoryProofStore([make_proof("same", received_at=T0)])

        assert resolve_proof(_event(), store).source_message_id == "same"

    def test_window_start_is_inclusive(self):
        store = InMemoryProofStore([make_proof("edge", received_at=T0 - timedelta(minutes=10))])

        assert resolve_proof(_event(), store).source_message_id == "edge"

    def test_one_second_outside_window_is_excluded(self):
        store = InMemoryProofStore(
            [make_proof("stale", received_at=T0 - timedelta(minutes=10, seconds=1))]
        )

        assert resolve_proof(_event(), store) is None

    def test_other_senders_proofs_are_ignored(self):
        store = InMemoryProofStore(
            [make_proof("theirs", sender_id=OTHER_SENDER, received_at=T0 - timedelta(minutes=1))]
        )

        assert resolve_proof(_event(), store) is None

    def test_linked_proofs_are_ignored(self):
        store = InMemoryProofStore(
            [make_proof("taken", received_at=T0 - timedelta(minutes=1), linked=True)]
        )

        assert resolve_proof(_event(), store) is None

    def test_custom_window(self):
        store = InMemoryProofStore([make_proof("p", received_at=T0 - timedelta(minutes=20))])

        assert resolve_proof(_event(), store) is None
        assert resolve_proof(_event(), store, window=timedelta(minutes=30)) is not None

    def test_no_proofs_returns_none(self):
        assert resolve_proof(_event(), InMemoryProofStore()) is None


class LosingStore(InMemoryProofStore):
    """Store where every claim loses to a concurrent writer."""

    def claim(self, source_message_id: str) -> bool:
        self.claim_calls += 1
        return False


class TestClaimRaces:
    def test_lost_claim_in_fallback_returns_none(self):
        store = LosingStore([make_proof("p", received_at=T0 - timedelta(minutes=1))])

        assert resolve_proof(_event(), store) is None

    def test_lost_quoted_claim_tries_fallback(self):
        store = LosingStore(
            [
                make_proof("abc", received_at=T0 - timedelta(hours=1)),
                make_proof("recent", received_at=T0 - timedelta(minutes=1)),
            ]
        )

        assert resolve_proof(_event(quoted="abc"), store) is None
        assert store.claim_calls == 2

    def test_concurrent_claims_have_exactly_one_winner(self):
        store = InMemoryProofStore([make_proof("abc")])
        n = 8
        barrier = threading.Barrier(n)
        results: list[bool] = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            ok = store.claim("abc")
            with lock:
                results.append(ok)

        threads = [threading.Thread(target=worker) for _ in range(n)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert results.count(False) == n - 1

    def test_concurrent_resolutions_never_double_link(self):
        store = InMemoryProofStore([make_proof("abc", received_at=T0 - timedelta(minutes=1))])
        n = 6
        barrier = threading.Barrier(n)
        linked: list[str | None] = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            proof = resolve_proof(_event(quoted="abc"), store)
            with lock:
                linked.append(proof.source_message_id if proof else None)

        threads = [threading.Thread(target=worker) for _ in range(n)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert linked.count("abc") == 1
        assert linked.count(None) == n - 1
