"""HTTP ingestion API for chatpipe."""
