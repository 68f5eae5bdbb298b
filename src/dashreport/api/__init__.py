"""HTTP front-end serving PDF reports."""
