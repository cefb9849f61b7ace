"""Test package for the locale pipeline.

This package contains test modules for every component of the locale pipeline.
"""
