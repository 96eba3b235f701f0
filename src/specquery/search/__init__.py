"""
In-memory search engine package.

- analyzers: Tokenizers, filters and per-field analyzers
- queries: Query and filter algebra
- similarity: Classic TF-IDF scoring factors
- phrase: Exact and sloppy phrase frequency
- index: Inverted/numeric index with transactional writes
"""
