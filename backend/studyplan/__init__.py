"""Adaptive study scheduling: exam study plans and interleaved practice sessions."""
