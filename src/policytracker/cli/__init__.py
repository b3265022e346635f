"""
Command-line interface for PolicyTracker.

This module provides CLI commands for:
- Extracting commitments from legislative replies
- Deduplicating the commitment store and rebuilding its index
- Tracking commitment status (updates, date sweep, backfill)
- Searching commitments through the Qdrant mirror

Usage:
    policytracker extract --input FILE      # Extract commitments
    policytracker status update --input F   # Apply new replies
    policytracker status sweep              # Date rules only
    policytracker query "離岸風電"           # Search commitments
"""

from .main import main

__all__ = ["main"]
