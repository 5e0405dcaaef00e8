"""codesift: code indexing and semantic retrieval for JavaScript, TypeScript and Python."""

__version__ = "0.1.0"
