"""
Kenya police brutality tracker: news scraping and incident extraction backend.
"""

__version__ = "1.0.0"
