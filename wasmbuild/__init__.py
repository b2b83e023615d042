"""
wasmbuild: compile contract packages to WebAssembly and collect the artifacts.
"""

__version__ = "0.1.0"
