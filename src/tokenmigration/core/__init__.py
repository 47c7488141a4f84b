"""Configuration, error hierarchy, logging, metrics and atomic execution helpers."""
