"""Product catalog search with a virtual field index, facets and logged-query suggestions."""

__version__ = "0.1.0"
