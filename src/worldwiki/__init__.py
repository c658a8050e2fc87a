"""WorldWiki: streaming encyclopedia pages for invented worlds."""

__version__ = "0.1.0"
