"""Session lifecycle: polling and the controller."""
