"""Streaming image import pipeline.

This package resolves endpoints, sniffs layered formats, builds the
decode chain, and copies the decoded payload to its destination.
"""
