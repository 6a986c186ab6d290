"""Scrape APY figures from client-rendered finance pages and serve the latest snapshot."""

__version__ = "0.1.0"
