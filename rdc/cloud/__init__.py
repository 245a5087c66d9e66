"""Device cloud HTTP transport."""
