"""Trajectory and estimation plots (matplotlib)."""
