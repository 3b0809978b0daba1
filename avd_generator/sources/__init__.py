"""One module per upstream data source."""
