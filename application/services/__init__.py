"""Search façade (single query) and batch façade (one query per target)."""
