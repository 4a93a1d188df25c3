"""Builders that turn resource specs into Harbor clients and request payloads."""
