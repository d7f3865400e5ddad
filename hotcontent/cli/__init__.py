# hotcontent/cli/__init__.py
"""Operational command-line entry points."""
