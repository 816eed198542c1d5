"""
User-configurable modules for the minimum-bias and diffractive analyses.

- configuration: Main analysis configuration (datasets, task settings,
  resonance pair definitions and functions)
"""
