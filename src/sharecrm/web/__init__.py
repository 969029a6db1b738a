"""HTTP JSON API."""
