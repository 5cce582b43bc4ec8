"""
phpvm - manage multiple PHP installations on one machine.

Installs prebuilt PHP archives into per-version directories, records them in
a local state file and switches which one is reachable on PATH.
"""

__version__ = "0.1.0"
