"""
Image Assignment Server

A web service that splits image lists into labeling assignments for workers,
records their submissions, and serves back the latest state of each assignment.
"""

__version__ = "1.0.0"
