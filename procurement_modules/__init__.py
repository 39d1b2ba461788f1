"""
Procurement business modules.

Each module is a thin declaration of one document's domain: models,
workflow table, validators and the executor that ties them together.
Modules depend on ``procurement_kernel`` and ``procurement_config``,
never on each other.
"""
