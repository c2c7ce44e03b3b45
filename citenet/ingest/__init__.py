# citenet/ingest/__init__.py

"""
Resolution pipeline for going from a seed id (or an identifier list) to a
fully built graph session.
"""

from .pipeline import ResolutionPipeline

__all__ = ["ResolutionPipeline"]
