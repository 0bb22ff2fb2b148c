"""safeedit: previewable, reversible, encoding-correct bulk text edits."""

__version__ = "0.4.0"
