"""Role Game — a text adventure narrated by a local language model."""
