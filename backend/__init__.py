"""
Timeline Backend - HTTP surface for the helpdesk coverage timeline.

This package provides a FastAPI backend that reads per-agent coverage data
and serves render-ready timeline snapshots to the dashboard frontend.
"""
