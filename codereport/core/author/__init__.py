from codereport.core.author.resolver import ResolvedAuthor, resolve_author

__all__ = ["ResolvedAuthor", "resolve_author"]
