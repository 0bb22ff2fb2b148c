"""Output layer: change log, JSON events, and Rich terminal rendering."""
