"""Multi-provider ad metrics sync pipeline."""
