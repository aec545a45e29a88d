"""Session state containers for the dashboard."""
