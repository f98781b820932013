"""
Background jobs for joingate.

- maintenance: webhook registration and state store housekeeping
"""
