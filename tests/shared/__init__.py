"""Shared testing utilities for the Firestore batcher.

This package contains reusable testing components:
- mock_factory.py: scripted document stores and operation factories
"""
