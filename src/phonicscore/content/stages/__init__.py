"""Bundled campaign stage definitions, one JSON file per stage."""
