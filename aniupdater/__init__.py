"""Daily anime update scraping, cron scheduling, SQL storage and a Flask web API."""

__version__ = "0.0.5"