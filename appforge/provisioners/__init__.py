"""Provisioners that turn a staged workspace into a deployed service."""
