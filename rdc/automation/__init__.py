"""Downstream WebDriver collaborator for an attached Appium server."""
