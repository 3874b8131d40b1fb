"""Workspace invitations, collaborators and external auth provider registration."""

__version__ = "0.1.0"
