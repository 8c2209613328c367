"""Application entrypoints for Aura."""
