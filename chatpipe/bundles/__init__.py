"""Bundles: ready-made sets of processors that register themselves with ``Bot.use``."""
