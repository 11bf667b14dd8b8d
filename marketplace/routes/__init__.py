"""HTTP routes for the marketplace service."""
