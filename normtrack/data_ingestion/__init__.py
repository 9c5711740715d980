"""normtrack – External data ingestion package.

This package contains the modules responsible for fetching daily price
history from the public Stooq CSV endpoint and turning the raw CSV text
into date → close mappings that the series merger consumes.
"""
