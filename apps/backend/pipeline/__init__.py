"""
Publication side of the scraping pipeline.

Scraped opportunities are fingerprinted, checked against the hash index,
mapped to a category and written to PostgreSQL together with their hash.
"""

__version__ = "1.0.0"
