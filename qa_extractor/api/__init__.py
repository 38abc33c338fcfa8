"""HTTP API: job start endpoints, job status polling and settings."""
