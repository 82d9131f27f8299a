"""Cross-cutting infrastructure: configuration, logging, database, security and errors."""
