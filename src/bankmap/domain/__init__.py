"""Domain layer for bankmap application."""

# Services import the database layer, which imports domain entities; load them lazily.
_SERVICES = {
    "AccountService": "bankmap.domain.account",
    "CategoryService": "bankmap.domain.category",
    "TransactionService": "bankmap.domain.transaction",
    "MappingTemplateService": "bankmap.domain.mapping_template",
    "ImportPipeline": "bankmap.domain.import_pipeline",
    "ImportQueueService": "bankmap.domain.import_queue",
}

__all__ = list(_SERVICES)


def __getattr__(name):
    if name in _SERVICES:
        import importlib

        return getattr(importlib.import_module(_SERVICES[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
