from .architecture import ArchitectureAnalyzer

__all__ = ["ArchitectureAnalyzer"]
