"""
sitewatch - Website Availability Monitor.

Periodically checks HTTP endpoints, derives rolling statistics from the raw
measurements, and raises/clears alerts when values cross thresholds. The
engine (metrics, aggregation, alerting) is driven entirely by configuration
lifecycle events, so websites, aggregators and alerts can be changed while
the service runs.
"""

__version__ = "0.1.0"
