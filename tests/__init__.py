"""
Concourse SDK Test Suite.

This package contains:
- unit/: Unit tests (no external dependencies)
- integration/: Client tests against a fake transport
"""
