"""
SEO metrics aggregator
Quota-governed, cached access to SEMrush keyword, domain and backlink data
"""

__version__ = "1.0.0"
