"""Pydantic models for graph nodes, query rows and recommendation results."""
