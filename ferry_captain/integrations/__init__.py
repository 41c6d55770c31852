"""External backend integrations."""
