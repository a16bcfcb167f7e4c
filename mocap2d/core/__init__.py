"""Core conversion stages: canonicalization, projection, retargeting and merge."""
