"""
Packages module.

Contains the bridge package structure:
- shared: Shared types, constants, utilities
- notification_stream: Per-user GitHub notification polling
"""
