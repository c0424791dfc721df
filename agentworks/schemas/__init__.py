"""Pydantic schemas for the rebate API."""
