"""Reference data bundled with VirPred."""
