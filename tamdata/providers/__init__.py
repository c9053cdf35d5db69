"""Concrete adapters: cache backends and external market-data sources."""
