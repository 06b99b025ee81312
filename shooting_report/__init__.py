"""
NYPD Shooting Incident Report
=============================

Exploratory analysis of the NYPD Shooting Incident (Historic) dataset.

Modules:
    - data_loader: CSV retrieval, parsing and header validation
    - schema: Declared column names, age-group order and failure policies
    - preprocessing: Typed conversion and derived year/hour/month columns
    - aggregation: Grouped counts, per-capita rates and murder shares
    - regression: Coordinate ~ hour-of-day OLS models
    - evaluation: Regression fit diagnostics
    - eda: Static charts and the markdown report
"""

__version__ = "1.0.0"
__author__ = "Incident Analytics Team"
