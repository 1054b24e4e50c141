"""
Core application logic.

`SeriesCatalog` serves TVmaze documents through the cache store, and
`SeriesTracker` applies tracking changes to the datastore.
"""
