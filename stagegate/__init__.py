"""
stagegate - stage workflow and automated gating for manufacturing orders.

Runs orders through catalog stages (warehouse intake, sorting, cutting,
packaging), auto-approves routine stage work from numeric business rules
and scores stage quality for human review.
"""

__version__ = "0.1.0"
