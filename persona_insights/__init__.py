"""PersonaInsights team and invitation service."""
