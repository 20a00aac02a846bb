"""HTTP surface for the rescue engine."""
