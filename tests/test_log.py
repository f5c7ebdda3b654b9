import logging
import unittest

from core.log import _resolve_level, get_trace_id, set_trace_id, trace_ctx


class LogSetupTestCase(unittest.TestCase):
    def test_resolve_level(self):
        self.assertEqual(_resolve_level("debug"), logging.DEBUG)
        self.assertEqual(_resolve_level(" WARNING "), logging.WARNING)
        self.assertEqual(_resolve_level("verbose"), logging.INFO)
        self.assertEqual(_resolve_level(None), logging.INFO)

    def test_trace_ctx_restores_outer_trace_id(self):
        set_trace_id("req-outer")
        with trace_ctx("req-inner") as tid:
            self.assertEqual(tid, "req-inner")
            self.assertEqual(get_trace_id(), "req-inner")
        self.assertEqual(get_trace_id(), "req-outer")

    def test_set_trace_id_generates_short_id_when_blank(self):
        tid = set_trace_id("")
        self.assertEqual(len(tid), 8)
        self.assertEqual(get_trace_id(), tid)


if __name__ == "__main__":
    unittest.main()
