"""
rotarch Test Suite

Tests for the RARCH estimators, their numerical utilities and the
configuration layer.
"""
