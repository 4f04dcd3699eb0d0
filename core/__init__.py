"""Simulation utilities shared by the problem models."""
