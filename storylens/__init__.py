"""StoryLens -- semantic indexing, search and analytics over writers' project text.

Entry points:

- :func:`storylens.bootstrap.build_story_index` -- assemble a
  :class:`~storylens.services.story_index.StoryIndex` from settings.
- ``python -m storylens.cli`` -- index a manuscript file and query it.
"""

__version__ = "0.1.0"
