import threading

from inbox_api.services.panic_mode import PanicMode, ReadWriteLock


class TestPanicMode:
    def test_inactive_by_default(self):
        panic_mode = PanicMode()
        assert panic_mode.is_active() is False
        assert panic_mode.status().active is False

    def test_enable_records_reason_and_actor(self):
        panic_mode = PanicMode()

        panic_mode.enable("runaway replies", "alice")

        status = panic_mode.status()
        assert panic_mode.is_active() is True
        assert status.reason == "runaway replies"
        assert status.activated_by == "alice"
        assert status.activated_at is not None

    def test_disable(self):
        panic_mode = PanicMode()
        panic_mode.enable("test", "alice")

        panic_mode.disable("bob")

        assert panic_mode.is_active() is False

    def test_disable_when_inactive(self):
        panic_mode = PanicMode()
        panic_mode.disable("bob")
        assert panic_mode.is_active() is False


class TestReadWriteLock:
    def test_readers_share_the_lock(self):
        lock = ReadWriteLock()
        both_inside = threading.Barrier(2, timeout=2)
        errors = []

        def reader():
            with lock.read():
                try:
                    both_inside.wait()
                except threading.BrokenBarrierError as exc:
                    errors.append(exc)

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []

    def test_writer_excludes_readers(self):
        lock = ReadWriteLock()
        reader_done = threading.Event()

        def reader():
            with lock.read():
                reader_done.set()

        with lock.write():
            thread = threading.Thread(target=reader)
            thread.start()
            assert reader_done.wait(0.2) is False

        thread.join(timeout=2)
        assert reader_done.is_set()

    def test_concurrent_toggles_leave_consistent_state(self):
        panic_mode = PanicMode()

        def toggle(i):
            if i % 2:
                panic_mode.enable("load", f"user-{i}")
            else:
                panic_mode.disable(f"user-{i}")
            panic_mode.is_active()

        threads = [threading.Thread(target=toggle, args=(i,)) for i in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        panic_mode.enable("final", "ops")
        assert panic_mode.status().active is True
        assert panic_mode.status().reason == "final"
