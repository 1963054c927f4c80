"""Internal helpers shared across reqstorm subpackages."""
