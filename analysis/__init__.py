"""
Analysis Engine Module

Calculates performance metrics from NAV series:
- Period returns (1W, 1M, YTD, ITD)
- Trailing monthly breakdown
- Excess returns vs. benchmarks (anchored at product inception)
- Strategy batch computation and metric table ordering
"""

__version__ = "0.1.0"
