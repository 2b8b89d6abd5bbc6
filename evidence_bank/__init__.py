"""
Evidence Bank — track audit evidence, evidence requests, deadlines,
and export evidence bundles.
"""

__version__ = "0.3.0"
