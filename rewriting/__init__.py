from rewriting.engine import (
    ContentRewriter,
    GENERATOR_SUFFIX,
    rewrite
)
