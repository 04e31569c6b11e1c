"""Turn client feedback into issue tracker tickets."""

__version__ = "0.1.0"
