"""changegate - Engineering change order lifecycle and BOM impact tooling."""

__version__ = "0.1.0"
