"""HTTP route modules, each exposing a ``create_*_router`` factory."""
