"""Core configuration, security collaborators and error taxonomy."""
