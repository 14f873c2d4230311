"""Row generation from risk and process taxonomies."""

from .generator import RowSyncResult, TaxonomyNode, leaf_nodes, regenerate_rows, sync_rows

__all__ = ["RowSyncResult", "TaxonomyNode", "leaf_nodes", "regenerate_rows", "sync_rows"]
