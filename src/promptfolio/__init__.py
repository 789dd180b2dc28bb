"""PromptFolio: portfolio pages published to GitHub Pages."""

__version__ = '0.1.0'
