"""Theme variable application.

The CSSVariableApplier turns harmonized palettes into `--sn-*` custom
properties, writes them to the StyleScope in one batch and announces the
result as `colors:applied`.
"""

import logging
from collections.abc import Mapping
from threading import Lock

from starrynight.events.types import ColorsAppliedPayload, ColorsHarmonizedPayload, UnifiedEvent
from starrynight.models.health import HealthResult
from starrynight.orchestration.descriptor import SystemContext
from starrynight.services.base import BaseSystem

logger = logging.getLogger(__name__)

VARIABLE_PREFIX = "--sn-"


def css_variable_name(key: str) -> str:
    """`DARK_VIBRANT` -> `--sn-dark-vibrant`. Names already starting with `--` pass through."""
    if key.startswith("--"):
        return key
    return f"{VARIABLE_PREFIX}{key.lower().replace('_', '-')}"


class StyleScope:
    """Custom properties of the host document's root style."""

    def __init__(self):
        self._lock = Lock()
        self._properties: dict[str, str] = {}

    def set_property(self, name: str, value: str) -> None:
        with self._lock:
            self._properties[name] = value

    def get_property_value(self, name: str) -> str:
        """Current value, or an empty string when unset."""
        with self._lock:
            return self._properties.get(name, "")

    def remove_property(self, name: str) -> str:
        with self._lock:
            return self._properties.pop(name, "")

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return dict(self._properties)

    def __len__(self) -> int:
        with self._lock:
            return len(self._properties)


class CSSVariableApplier(BaseSystem):
    """Publishes theme variables for every harmonized palette."""

    def __init__(self, context: SystemContext, scope: StyleScope | None = None):
        super().__init__(context)
        self.scope = scope or StyleScope()
        self._batches = 0
        self._writes = 0

    def _setup(self) -> None:
        self.subscribe(UnifiedEvent.COLORS_HARMONIZED, self._on_colors_harmonized)

    @staticmethod
    def build_variables(payload: ColorsHarmonizedPayload) -> dict[str, str]:
        variables = {css_variable_name(key): value for key, value in payload.processed_colors.items()}
        variables.update(payload.css_variables)
        variables[f"{VARIABLE_PREFIX}accent-hex"] = payload.accent_hex
        variables[f"{VARIABLE_PREFIX}accent-rgb"] = payload.accent_rgb
        return variables

    def _on_colors_harmonized(self, payload: ColorsHarmonizedPayload) -> None:
        variables = self.build_variables(payload)
        self.apply_variables(variables)
        self.publish(
            UnifiedEvent.COLORS_APPLIED,
            ColorsAppliedPayload(
                css_variables=variables,
                accent_hex=payload.accent_hex,
                accent_rgb=payload.accent_rgb,
                strategies=payload.strategies,
                track_uri=payload.track_uri,
            ),
        )

    def apply_variables(self, variables: Mapping[str, str]) -> int:
        """
        Write custom properties in one batch, skipping unchanged values.

        Returns:
            Number of properties actually written
        """
        written = 0
        for name, value in variables.items():
            if self.scope.get_property_value(name) != value:
                self.scope.set_property(name, value)
                written += 1
        self._batches += 1
        self._writes += written
        logger.debug(f"Applied {written}/{len(variables)} theme variables")
        return written

    def get_variable(self, name: str) -> str:
        return self.scope.get_property_value(css_variable_name(name))

    def _check_health(self) -> HealthResult:
        return HealthResult.ok(
            f"{len(self.scope)} theme variables",
            variables=len(self.scope),
            batches=self._batches,
            writes=self._writes,
        )
