"""
marshalgen - Java marshaller factory generator.

Builds an in-memory model of the marshaller factory class for a closed set of
exposed types and renders it to Java source.
"""

__version__ = "0.1.0"
