"""compatmatrix - compatibility test-matrix runner."""
