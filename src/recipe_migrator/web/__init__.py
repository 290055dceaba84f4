"""Recipe Migrator web API."""
