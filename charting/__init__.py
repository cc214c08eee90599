"""
Charting Module

Date-aligned, rebased series for visual comparison:
- Union date axis filtered to a named time range
- Rebasing to 1.0 at each series' first in-range point
- Forward-fill of gaps once a series has started
"""

__version__ = "0.1.0"
