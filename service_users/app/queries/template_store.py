"""
Named SQL template store for the Users Service.
"""

from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from shared.logging import get_logger
from shared.errors import TemplateNotFoundError


SECTION_MARKER = "-- name:"
STATEMENT_TERMINATOR = ";"
DEFAULT_QUERIES_PATH = Path(__file__).resolve().parent / "user_queries.sql"


class QueryLoader:
    """Loads named SQL fragments from a single text resource.

    The resource is split on ``-- name:`` marker lines. The first line of each
    section is the template name, the rest is the body (trimmed, one trailing
    ``;`` removed). Text before the first marker is ignored, and a repeated
    name replaces the earlier body. Templates are immutable once loaded.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path is not None else DEFAULT_QUERIES_PATH
        self.logger = get_logger("users.queries.loader")
        self._queries: Dict[str, str] = {}

    def load(self) -> "QueryLoader":
        """Read and parse the template resource.

        Raises TemplateNotFoundError when the resource cannot be read; this is
        a startup failure and is never retried.
        """
        try:
            content = self.path.read_text(encoding="utf-8")
        except OSError as e:
            self.logger.error("Failed to read query templates", path=str(self.path), error=str(e))
            raise TemplateNotFoundError(
                str(self.path),
                f"query template resource {self.path} cannot be read",
                {"error": str(e)}
            ) from e

        self._queries = self.parse(content)
        self.logger.info("Queries loaded successfully", count=len(self._queries), path=str(self.path))
        return self

    @staticmethod
    def parse(content: str) -> Dict[str, str]:
        """Parse resource text into a name -> body mapping."""
        queries: Dict[str, str] = {}

        sections = content.split(SECTION_MARKER)
        for section in sections[1:]:
            if not section.strip():
                continue

            lines = section.split("\n")
            if len(lines) < 2:
                continue

            name = lines[0].strip()
            body = "\n".join(lines[1:]).strip()
            if body.endswith(STATEMENT_TERMINATOR):
                body = body[:-len(STATEMENT_TERMINATOR)].rstrip()

            queries[name] = body

        return queries

    def get(self, name: str) -> Tuple[str, bool]:
        """Look up a template body; the flag is False for unknown names."""
        query = self._queries.get(name)
        if query is None:
            return "", False
        return query, True

    def names(self):
        """Loaded template names."""
        return sorted(self._queries)

    def __len__(self) -> int:
        return len(self._queries)
