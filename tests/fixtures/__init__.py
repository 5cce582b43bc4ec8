"""Test fixtures for phpvm tests.

Fixtures are organized by type:

- archives: Builders for PHP release archives (zip, tar.gz, truncated)
- directories: phpvm base directories, configs and state stores
- fakes: In-memory stand-ins for the registry and the release server

Import fixtures in your tests using:
    from tests.fixtures.archives import make_php_zip
    from tests.fixtures.fakes import StaticProvider
"""

__all__ = [
    "archives",
    "directories",
    "fakes",
]
