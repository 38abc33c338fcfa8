"""Clients for external services: Google Sheets/Drive, public downloads, gists."""
