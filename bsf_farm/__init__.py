"""
BSF Farm Data Platform

Relational schema and tooling for a Black Soldier Fly farming operation.
"""

__version__ = "2.0.0"
