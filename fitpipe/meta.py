"""
@module: fitpipe.meta
@depends:
@exports: component
@data_flow: decorator metadata -> class attribute
"""

from typing import List, Optional


def component(
    name: str,
    responsibility: str,
    depends_on: Optional[List[str]] = None,
):
    """
    Decorator to mark classes as architectural components.

    The metadata is stored on the class as `__component_metadata__`.

    Args:
        name: Component name (e.g., "Pipeline")
        responsibility: Brief description of component's role
        depends_on: List of component names this depends on

    Example:
        @component(
            name="Pipeline",
            responsibility="Immutable chain of estimator steps",
            depends_on=["ColumnSet"]
        )
        class Pipeline:
            pass
    """
    def decorator(cls: type) -> type:
        cls.__component_metadata__ = {
            "name": name,
            "responsibility": responsibility,
            "depends_on": depends_on or [],
        }
        return cls
    return decorator
