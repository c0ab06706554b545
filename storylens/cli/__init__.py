# =============================================================================
# storylens/cli/__init__.py -- CLI Module Overview
# =============================================================================
#
# Command-line access to the indexing engine for local development.  The
# engine's stores are in-memory, so every command indexes the manuscript
# file first and then runs against that fresh index:
#
#   index      -- chunk, embed and tag a manuscript; print the IndexingResult
#   search     -- index, then run one query; print the SearchResponse
#   analytics  -- index, then print ProjectAnalytics
#
# Output is JSON on stdout; structlog events go to stderr.
# =============================================================================

"""CLI tools for StoryLens.

- ``python -m storylens.cli index manuscript.txt``
- ``python -m storylens.cli search manuscript.txt "scenes about betrayal" --type theme``
- ``python -m storylens.cli analytics manuscript.txt --mode deep``
"""
