"""
Heatload - terrain Heat Load Index analysis for silvicultural planning.

This package derives slope, aspect and the McCune & Keon (2002) Heat Load
Index from elevation models, aggregates the index to coarser resolutions,
classifies it into quartiles, and summarizes it onto management units.
"""

__version__ = "0.1.0"
