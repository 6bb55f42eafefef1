"""
Property-based tests for zapvault.

Hypothesis drives random valuations and random sequences of vault
operations, checking pricing and accounting invariants.
"""
