"""
Test suite for Flow Assist.

This package contains tests for all core functionality including:
- Flow document model, history and entity resolution
- Operation execution and the command interpreter state machine
- Chat sessions with undo/redo
- Error classification and TTL caches
- Translation, speech synthesis and text improvement
- The Typer CLI
"""
