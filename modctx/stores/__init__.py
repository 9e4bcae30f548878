from .churn_cache import ChurnCache

__all__ = ["ChurnCache"]
