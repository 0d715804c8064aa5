"""Editing operations on a TaxConfig.

Each operation returns a new config with a fresh ``updated_at``; the config
passed in is left untouched, as are tax snapshots already stored on orders.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from threading import Lock
from typing import Any, Callable, Mapping, Optional

from pydantic import ValidationError

from .exceptions import TaxConfigError
from .schemas import TaxConfig, TaxLine, TaxMode
from .utils import generate_id, utcnow

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {"name", "rate", "mode", "enabled"}


def add_tax(
    config: TaxConfig,
    name: str,
    rate: Decimal,
    mode: TaxMode = TaxMode.FIXED,
    enabled: bool = True,
) -> TaxConfig:
    try:
        line = TaxLine(id=generate_id("TAX"), name=name, rate=rate, mode=mode, enabled=enabled)
    except ValidationError as exc:
        raise TaxConfigError(f"invalid tax line {name!r}: {exc.errors()[0]['msg']}") from exc
    logger.info("tax line added: %s (%s%%)", line.name, line.rate)
    return TaxConfig(taxes=[*config.taxes, line], updated_at=utcnow())


def update_tax(config: TaxConfig, tax_id: str, **updates: Any) -> TaxConfig:
    unknown = set(updates) - _UPDATABLE_FIELDS
    if unknown:
        raise TaxConfigError(f"cannot update fields: {', '.join(sorted(unknown))}")

    found = False
    taxes = []
    for line in config.taxes:
        if line.id == tax_id:
            found = True
            changes = {k: v for k, v in updates.items() if v is not None}
            try:
                line = TaxLine.model_validate({**line.model_dump(), **changes})
            except ValidationError as exc:
                raise TaxConfigError(f"invalid update for tax {tax_id}: {exc.errors()[0]['msg']}") from exc
        taxes.append(line)

    if not found:
        raise TaxConfigError(f"tax not found: {tax_id}")
    return TaxConfig(taxes=taxes, updated_at=utcnow())


def delete_tax(config: TaxConfig, tax_id: str) -> TaxConfig:
    taxes = [line for line in config.taxes if line.id != tax_id]
    if len(taxes) == len(config.taxes):
        raise TaxConfigError(f"tax not found: {tax_id}")
    logger.info("tax line deleted: %s", tax_id)
    return TaxConfig(taxes=taxes, updated_at=utcnow())


def load_tax_config(raw: Optional[Mapping[str, Any]]) -> TaxConfig:
    """Build a TaxConfig from stored JSON.

    The older single-tax layout (``{"rate": .., "enabled": .., "name": ..}``
    with a missing or null ``taxes`` list) becomes a one-line config, or an
    empty one when that tax was switched off.
    """
    if not raw:
        return TaxConfig()
    if raw.get("taxes") is None and "rate" in raw:
        taxes = []
        if raw.get("enabled"):
            taxes.append(
                TaxLine(
                    id=generate_id("TAX"),
                    name=raw.get("name") or "Tax",
                    rate=raw.get("rate") or 0,
                    mode=raw.get("mode") or TaxMode.FIXED,
                    enabled=True,
                )
            )
        logger.info("migrated legacy single-tax config (%d line)", len(taxes))
        return TaxConfig(taxes=taxes, updated_at=utcnow())
    return TaxConfig.model_validate(raw)


class TaxConfigState:
    """The live tax config shared by concurrent request handlers.

    Edits run one at a time so that no update is lost between reading the
    current config and storing the edited one.
    """

    def __init__(self, config: Optional[TaxConfig] = None) -> None:
        self._config = config if config is not None else TaxConfig()
        self._lock = Lock()

    @property
    def config(self) -> TaxConfig:
        return self._config

    def apply(self, edit: Callable[..., TaxConfig], *args: Any, **kwargs: Any) -> TaxConfig:
        with self._lock:
            self._config = edit(self._config, *args, **kwargs)
            return self._config
