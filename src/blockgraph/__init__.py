"""blockgraph: block definitions to graph, tree and relationships."""

__version__ = "0.1.0"
