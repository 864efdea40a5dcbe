"""Return claims reasoner: staged analysis and decisioning of product return requests."""

__version__ = "0.1.0"
