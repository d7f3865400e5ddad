# hotcontent/__init__.py
"""Hot-content discovery, safety-gated ranking and engagement learning."""

__version__ = "0.1.0"
