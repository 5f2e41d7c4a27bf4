"""
Core functionality for Flow Assist.

This package contains the main logic for:
- The flow document model and its persistence
- Command interpretation through model tool calls
- Operation execution with entity resolution
- Undo/redo snapshot history
- Cached flow translation and step speech synthesis
- Configuration management
"""
