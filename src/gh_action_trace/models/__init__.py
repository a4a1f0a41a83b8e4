"""Typed models for GitHub Actions metadata and emitted spans."""
