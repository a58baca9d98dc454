"""Modularisan -- modular-architecture scaffolding for JavaScript/TypeScript projects."""

__version__ = "2.0.0"
