"""Pipeline orchestration for similar-artists requests."""

from src.pipeline.orchestrator import SimilarArtistsPipeline

__all__ = ["SimilarArtistsPipeline"]
