"""
Integration tests for tack.

These tests drive whole builds through the CLI entry point against the fake
compiler, covering configuration layering, incremental rebuilds and
parallel compilation.
"""
