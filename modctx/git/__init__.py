from .churn import ChurnData, ChurnSource, GitChurnSource
from .head import read_head_commit

__all__ = ["ChurnData", "ChurnSource", "GitChurnSource", "read_head_commit"]
