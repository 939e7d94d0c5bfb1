"""Tantivy schema shared by every per-directory index."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import tantivy

INDEX_SUFFIX = ".tantivy"
TMP_SUFFIX = ".tmp"

# Tokenized fields for querying
CONTENT_FIELD = "content"
PATH_FIELD = "path"
# Untokenized copies for exact lookups
PATH_EXACT_FIELD = "path_exact"
REPO_FIELD = "repo"
SOURCE_FIELD = "source"

DEFAULT_FIELDS = [CONTENT_FIELD]


def index_path(index_dir: Path, name: str) -> Path:
    return Path(index_dir) / f"{name}{INDEX_SUFFIX}"


def build_schema() -> tantivy.Schema:
    schema_builder = tantivy.SchemaBuilder()
    schema_builder.add_text_field(PATH_FIELD, stored=True, tokenizer_name="default")
    schema_builder.add_text_field(PATH_EXACT_FIELD, stored=False, tokenizer_name="raw")
    schema_builder.add_text_field(CONTENT_FIELD, stored=True, tokenizer_name="default")
    schema_builder.add_text_field(REPO_FIELD, stored=True, tokenizer_name="raw")
    schema_builder.add_text_field(SOURCE_FIELD, stored=True, tokenizer_name="raw")
    return schema_builder.build()


@lru_cache(maxsize=1)
def query_validator() -> tantivy.Index:
    """In-memory index used to parse queries before any index is opened."""
    return tantivy.Index(build_schema())
