"""Integration tests.

Purpose
- Exercise the bootstrap against real properties files and the real root logger.

Guidelines
- Use temporary directories for configuration and log files.
- Close every application container a test starts.
- Mark as 'integration' (applied by conftest).
"""
