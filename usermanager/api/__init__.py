"""Flask blueprints: REST surface, console, auth, health and docs."""
