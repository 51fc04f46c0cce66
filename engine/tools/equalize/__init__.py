"""
Equalization module - compares contractor proposals against the reference WBS.

Submodules:
- equalize: tool entry points called by the API
- equalize_models: Pydantic row and tree models (WbsNode, Proposal, TreeNode, ...)
- equalize_matrix: linkage indexer (wbs -> proposal -> linked items)
- equalize_tree: tree builder and bottom-up total aggregation
- equalize_filter: relevance filter (prunes branches without value)
- equalize_detail: lowest/highest comparison for rows and node drill-down
- equalize_sections: proposal items grouped by spreadsheet section
- equalize_edits: optimistic tag/visibility edits with rollback
- equalize_store: PostgreSQL / mock data access
"""
