"""govcon-ingest - government contracting data ingestion.

Rate-limited, paginated adapters for SAM.gov opportunities, SBIR.gov awards
and solicitations, USAspending award search and the Census geocoder, plus
fan-out jobs that run them across configured NAICS codes, agencies and
keywords.
"""

__version__ = "0.1.0"


# Lazy submodule access
def __getattr__(name: str):
    if name == "sources":
        from govcon_ingest import sources
        return sources
    if name == "models":
        from govcon_ingest import models
        return models
    if name == "jobs":
        from govcon_ingest import jobs
        return jobs
    if name == "config":
        from govcon_ingest import config
        return config
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
