"""Application services coordinating the scanner components."""
