"""HTTP interface for the menu recommender."""
