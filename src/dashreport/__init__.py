"""Render Grafana dashboards into PDF reports."""

__version__ = "0.1.0"
