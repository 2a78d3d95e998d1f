"""Case module services."""
