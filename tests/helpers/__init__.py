"""Test helper utilities for Job Watch tests."""

from .fake_adapter import FakeAdapterFactory, make_posting

__all__ = ["FakeAdapterFactory", "make_posting"]
