"""
SQL template package for the Users Service.

- template_store: loads named statements from user_queries.sql.
- renderer: evaluates template directives and binds named placeholders
  to positional driver arguments.
"""

from .template_store import QueryLoader, DEFAULT_QUERIES_PATH
from .renderer import QueryRenderer, bind_positional

__all__ = ["QueryLoader", "QueryRenderer", "bind_positional", "DEFAULT_QUERIES_PATH"]
