"""
Lodge website data-access layer: cached, deduplicated, circuit-protected
reads over a Supabase backend.
"""
