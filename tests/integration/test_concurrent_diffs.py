"""Concurrency tests: optimistic versioning under parallel submitters."""

import threading
from concurrent.futures import ThreadPoolExecutor

from stagegate.core.errors.merge import RejectionReason
from stagegate.core.workflow.models import Stage


def _diff(base, key):
    return {"base_version": base, "operations": [{"path": key, "op": "insert", "value": key}]}


class TestConcurrentDiffs:
    def test_exactly_one_diff_per_base_is_applied(self, engine):
        barrier = threading.Barrier(6)

        def submit(index):
            barrier.wait()
            return engine.submit_diff("alpha", _diff(0, f"k{index}"))

        with ThreadPoolExecutor(max_workers=6) as pool:
            results = list(pool.map(submit, range(6)))

        applied = [r for r in results if r.applied]
        rejected = [r for r in results if not r.applied]
        assert len(applied) == 1
        assert applied[0].version == 1
        assert all(r.reason is RejectionReason.STALE_BASE for r in rejected)

        document = engine.read_document("alpha")
        assert document.version == 1
        assert len(document.content) == 1
        assert engine.verify_history("store").total_entries == 6

    def test_versions_stay_contiguous_under_retry(self, engine):
        def writer(index):
            while True:
                base = engine.read_document("counter").version
                if engine.submit_diff("counter", _diff(base, f"w{index}")).applied:
                    return

        threads = [threading.Thread(target=writer, args=(i,)) for i in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        history = engine.document_history("counter")
        assert [document.version for document in history] == [1, 2, 3, 4]
        assert sorted(history[-1].content) == ["w0", "w1", "w2", "w3"]

    def test_sessions_race_on_shared_document(self, engine, advance_to):
        sessions = [engine.start_session() for _ in range(2)]
        for session_id in sessions:
            advance_to(session_id, Stage.DESIGN)
        barrier = threading.Barrier(2)

        def submit(session_id):
            barrier.wait()
            return engine.submit_diff("shared", _diff(0, session_id), session_id=session_id)

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = list(pool.map(submit, sessions))

        assert sorted(r.applied for r in results) == [False, True]
        for session_id in sessions:
            assert engine.verify_history(session_id).valid
            assert engine.get_session(session_id).stage is Stage.DESIGN
