"""microgen: scaffold microservice projects from a template tree."""

__version__ = "0.1.0"
