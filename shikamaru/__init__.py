"""
shikamaru - local multi-repository development environment orchestrator.

Installs dependencies, starts every repository locally or inside a
generated Docker Compose stack, and tears everything down on exit.
"""
