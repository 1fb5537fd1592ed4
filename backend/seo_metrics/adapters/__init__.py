"""
Adapters - provider client and response parsing
"""
