"""
Tests Package - Unit Tests

Test structure:
- tests/unit/ - Fast, isolated unit tests
- tests/conftest.py - Shared pytest fixtures (settings, schedule files, fake crontab)

Crontab I/O is exercised against a fake crontab command, never the real one.
"""
