"""
Synapse KB - a local-first note-taking knowledge base.

Notes are stored as Markdown files on disk and indexed in a single SQLite
database together with their blocks, folders, tags, links and attachments.
Full-text search is served by FTS5 shadow tables kept in step with every write.

This version uses synchronous operations over one owned connection.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("synapse-kb")
except PackageNotFoundError:
    __version__ = "0.3.0"
