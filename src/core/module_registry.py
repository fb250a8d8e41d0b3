"""Module registry for managing engine feature modules."""

from typing import ClassVar

from src.core.module import Module, ScheduledJob


class _RegistryState:
    """Singleton state for module registry."""

    modules: ClassVar[dict[str, Module]] = {}


_registry = _RegistryState()


def register_module(module: Module) -> None:
    """Register a module in the registry.

    Raises:
        ValueError: If a module with the same name is already registered
    """
    if module.name in _registry.modules:
        msg = f"Module '{module.name}' is already registered"
        raise ValueError(msg)
    _registry.modules[module.name] = module


def ensure_default_modules() -> None:
    """Register the built-in modules if nothing has been registered yet."""
    if _registry.modules:
        return

    from src.modules.tasks import TasksModule

    register_module(TasksModule())


def get_modules() -> dict[str, Module]:
    """Get all registered modules."""
    return dict(_registry.modules)


def get_all_table_schemas() -> dict[str, str]:
    """Collect table schemas from every registered module.

    Raises:
        ValueError: If two modules declare the same table
    """
    all_schemas: dict[str, str] = {}
    for module in _registry.modules.values():
        for table_name, schema in module.get_table_schemas().items():
            if table_name in all_schemas:
                msg = f"Duplicate table schema '{table_name}' from module '{module.name}'"
                raise ValueError(msg)
            all_schemas[table_name] = schema
    return all_schemas


def get_all_indexes() -> list[str]:
    """Collect CREATE INDEX statements from every registered module."""
    return [index for module in _registry.modules.values() for index in module.get_indexes()]


def get_all_scheduled_jobs() -> list[ScheduledJob]:
    """Collect background jobs from every registered module."""
    return [job for module in _registry.modules.values() for job in module.get_scheduled_jobs()]
