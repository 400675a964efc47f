"""
COVID-19 Survey Answer Profiles

Sequence-analysis clustering of survey responses: answers are encoded as
state sequences, compared with Optimal Matching using transition-rate
substitution costs, and grouped with Ward hierarchical clustering.
"""

__version__ = "0.1.0"
