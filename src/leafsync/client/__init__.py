"""Client module - GitHub API client, sync engines, local cache and CLI."""
