"""Ordered schema migration steps, loaded by :func:`idlegame.storage.load_migrations`."""
