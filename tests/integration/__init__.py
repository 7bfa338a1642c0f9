"""
Integration tests for sitewatch.

These tests verify that checks, aggregators, alerts and the control
commands work together on a shared configuration. HTTP is scripted, no
network access is needed.

Run with:
    pytest tests/integration/ -v -m integration

Skip with:
    pytest -m "not integration"
"""
