# conftest.py
# Pytest configuration for the SemNotes test environment
#
# Forces test mode before any api module is imported: the in-memory mock
# backend replaces Firebase, Redis caching and rate limiting are off.
#
# @see: api/config.py - SEMNOTES_TEST_MODE / USE_REAL_FIREBASE
# @see: tests/conftest.py - Per-test backend fixtures

import os

os.environ["SEMNOTES_TEST_MODE"] = "true"
os.environ["USE_REAL_FIREBASE"] = "false"
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")
