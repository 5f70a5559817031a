"""Shared utilities."""

from .county_normalization import get_county_statistics, get_top_counties, normalize_county_name

__all__ = ['normalize_county_name', 'get_county_statistics', 'get_top_counties']
