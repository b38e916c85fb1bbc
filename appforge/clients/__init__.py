"""Outbound clients: completion service, source-hosting API, git, metadata server."""
