"""Registry resolving activity implementations from type strings."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type

from ..contracts import ActivityDefinition
from ..exceptions import UnknownActivityType
from .base import ActivityConfig, WorkflowActivity

logger = logging.getLogger(__name__)


class ActivityFactory:
    """Maps activity type keys to implementations and their config models.

    Construct one per process (or per test) and pass it to the engine.
    """

    def __init__(self) -> None:
        self._registry: Dict[str, Tuple[Type[WorkflowActivity], Dict[str, Any]]] = {}

    def register(
        self,
        activity_cls: Type[WorkflowActivity],
        activity_type: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Register ``activity_cls`` under ``activity_type``.

        Keyword arguments are passed to the constructor on every ``create``.
        """
        key = activity_type or activity_cls.activity_type
        if key in self._registry:
            logger.warning(f"Replacing activity registration for type {key}")
        self._registry[key] = (activity_cls, kwargs)

    def is_registered(self, activity_type: str) -> bool:
        return activity_type in self._registry

    def registered_types(self) -> List[str]:
        return sorted(self._registry)

    def describe(self) -> Dict[str, str]:
        return {key: cls.description for key, (cls, _) in sorted(self._registry.items())}

    def create(self, activity_type: str) -> WorkflowActivity:
        try:
            activity_cls, kwargs = self._registry[activity_type]
        except KeyError:
            raise UnknownActivityType(activity_type) from None
        return activity_cls(**kwargs)

    def parse_config(
        self,
        definition: ActivityDefinition,
        properties: Optional[Mapping[str, Any]] = None,
    ) -> ActivityConfig:
        """Parse a property bag into the typed config of ``definition``.

        ``properties`` replaces the declared properties, e.g. after runtime
        overrides have been merged in.
        """
        try:
            activity_cls, _ = self._registry[definition.type]
        except KeyError:
            raise UnknownActivityType(definition.type) from None
        if properties is None:
            properties = definition.properties
        return activity_cls.config_model.model_validate(dict(properties))
