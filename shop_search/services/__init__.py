from .search import SearchEngine, SearchLogService

__all__ = ["SearchEngine", "SearchLogService"]
