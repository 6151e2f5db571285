"""Core services: configuration, logging, errors and the QC engine."""
