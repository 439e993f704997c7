import unittest

from ksquiz.engine.timer import SessionTimer
from ksquiz.errors import InvalidState
from tests.factories import FakeClock


class SessionTimerTests(unittest.TestCase):
    def test_elapsed_plus_remaining_equals_limit(self) -> None:
        clock = FakeClock()
        t = SessionTimer(120, clock=clock)
        t.start()
        for step in (0, 10, 25.5, 40):
            clock.advance(step)
            self.assertAlmostEqual(t.elapsed() + t.remaining(), 120)

    def test_pause_freezes_elapsed(self) -> None:
        clock = FakeClock()
        t = SessionTimer(100, clock=clock)
        t.start()
        clock.advance(30)
        t.pause()
        clock.advance(500)
        self.assertEqual(t.elapsed(), 30)
        self.assertEqual(t.remaining(), 70)
        t.resume()
        clock.advance(5)
        self.assertEqual(t.elapsed(), 35)

    def test_pause_then_immediate_resume_keeps_remaining(self) -> None:
        clock = FakeClock()
        t = SessionTimer(60, clock=clock)
        t.start()
        clock.advance(12)
        before = t.remaining()
        t.pause()
        t.resume()
        self.assertEqual(t.remaining(), before)

    def test_expiry_is_polled(self) -> None:
        clock = FakeClock()
        t = SessionTimer(60, clock=clock)
        t.start()
        clock.advance(59.9)
        self.assertFalse(t.expired())
        clock.advance(1)
        self.assertTrue(t.expired())
        self.assertEqual(t.remaining(), 0)

    def test_unbounded_timer(self) -> None:
        clock = FakeClock()
        t = SessionTimer(None, clock=clock)
        t.start()
        clock.advance(10_000)
        self.assertIsNone(t.remaining())
        self.assertFalse(t.expired())

    def test_invalid_transitions(self) -> None:
        t = SessionTimer(60, clock=FakeClock())
        with self.assertRaises(InvalidState):
            t.pause()
        with self.assertRaises(InvalidState):
            t.resume()
        t.start()
        with self.assertRaises(InvalidState):
            t.start()
        with self.assertRaises(InvalidState):
            t.resume()

    def test_stop_is_final(self) -> None:
        clock = FakeClock()
        t = SessionTimer(60, clock=clock)
        t.start()
        clock.advance(10)
        t.stop()
        clock.advance(10)
        self.assertEqual(t.elapsed(), 10)
        with self.assertRaises(InvalidState):
            t.resume()


if __name__ == "__main__":
    unittest.main()
