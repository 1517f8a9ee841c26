"""Templates shipped as package data."""
