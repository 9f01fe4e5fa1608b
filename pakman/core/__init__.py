"""Core primitives: error taxonomy, checksum codec, store layout and persistence."""
