"""Unit tests for the game chat translator.

This package contains test modules for all components of the translator.
Tests use pytest with asyncio support and replace engines and HTTP sessions with stubs.
"""
