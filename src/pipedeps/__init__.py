"""pipedeps - Azure Pipelines task dependency submission."""

__version__ = "1.0.0"
