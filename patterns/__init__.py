"""Reusable patterns shared by the TaskHub verticals.

Each module is a self-contained building block: the rules engine, the
async repository layer, and dataclass configuration.
"""
