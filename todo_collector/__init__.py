"""
Obsidian TODO Collector

Collects tag-marked TODO lines from vault notes into a single output note,
marks harvested notes in their frontmatter and optionally groups the result
through an external classification service.
"""

__version__ = "1.0.0"
