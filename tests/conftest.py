"""Pytest bootstrap configuration.

Settings are read at import time, so the environment has to be prepared
before any application module is collected.
"""
import os

os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REALTIME__STORE", "memory")
