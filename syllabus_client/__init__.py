"""Async client for the syllabus learning backend and its video generation jobs."""

__version__ = "0.1.0"
