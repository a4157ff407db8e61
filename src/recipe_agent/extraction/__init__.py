"""
Extraction - structuring collected items.
"""

from recipe_agent.extraction.job_extractor import JobData, JobExtractor

__all__ = ["JobData", "JobExtractor"]
