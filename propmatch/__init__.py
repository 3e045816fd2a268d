"""Photo-to-property geospatial matching."""
