"""Rebate business logic services."""
