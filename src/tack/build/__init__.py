"""Build system components for tack.

This module provides the scanning, staleness, scheduling and orchestration
pieces used to turn a target into an executable.
"""
