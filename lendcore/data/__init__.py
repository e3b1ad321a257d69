"""Reserve configuration providers and protocol constants.

Import ``create_provider`` from ``lendcore.data.provider_factory`` (or from
the top-level ``lendcore`` package); this package stays import-free so that
``lendcore.protocol`` can depend on ``lendcore.data.constants``.
"""
