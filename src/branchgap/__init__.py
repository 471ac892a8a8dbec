"""branchgap: branch-coverage gap analysis for JavaScript projects."""

__version__ = "0.1.0"
