"""Static portfolio page rendering."""

from .render import CONTENT_PATH, render, render_html

__all__ = ['CONTENT_PATH', 'render', 'render_html']
