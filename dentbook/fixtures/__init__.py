"""Seed data for the scheduling database.

Contains the branch locations and the services offered online.
"""

from dentbook.fixtures.catalog import LOCATIONS, SERVICES, seed_catalog

__all__ = ["LOCATIONS", "SERVICES", "seed_catalog"]
