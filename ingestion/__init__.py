"""ingestion — File I/O boundary (audio loading)."""
