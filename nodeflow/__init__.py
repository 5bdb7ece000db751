"""nodeflow: visual workflow graphs and the engine that runs them."""

__version__ = "1.0.0"
