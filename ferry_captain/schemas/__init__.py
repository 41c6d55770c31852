"""Pydantic schemas for trips, stops, passengers and action results."""
