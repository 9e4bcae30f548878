from .builder import IndexBuilder, collect_edges, emitted_edge_types

__all__ = ["IndexBuilder", "collect_edges", "emitted_edge_types"]
