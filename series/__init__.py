"""
Series Module

Input contract for the metrics engine:
- DataPoint / TimeSeries (product or benchmark NAV history)
- As-of point lookup over sparse, irregularly dated series
- Point validation and sanitizing
"""

__version__ = "0.1.0"
