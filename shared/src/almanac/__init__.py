"""Almanac shared package: configuration, persistence, schemas and services."""
