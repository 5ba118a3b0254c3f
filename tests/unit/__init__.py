"""Unit tests.

Purpose
- Verify a single module/class/function in isolation.

Guidelines
- Avoid real I/O beyond pytest's temporary directories; use fakes at boundaries.
- Prefer behavior-centric assertions over implementation details.
- Keep tests small, fast, and deterministic.
"""
