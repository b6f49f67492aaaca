"""Build typed copy-bot settings from the YAML/env configuration layer."""

from decimal import Decimal, InvalidOperation
from typing import Any

from mirror_trader.apps.copy_bot.models import CopyConfig, Credentials, DeferPolicy, OrderType
from mirror_trader.core.config import ConfigError, ConfigLoader

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off"})


def _decimal(name: str, value: Any) -> Decimal:
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        msg = f"{name} must be a number, got {value!r}"
        raise ConfigError(msg) from exc
    if not result.is_finite():
        msg = f"{name} must be a finite number, got {value!r}"
        raise ConfigError(msg)
    return result


def _float(name: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        msg = f"{name} must be a number, got {value!r}"
        raise ConfigError(msg) from exc


def _bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    msg = f"{name} must be a boolean, got {value!r}"
    raise ConfigError(msg)


def _optional(value: Any) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return value


def load_copy_config(loader: ConfigLoader, **overrides: Any) -> CopyConfig:
    """Build a ``CopyConfig`` from the ``copy`` section.

    Args:
        loader: Loaded configuration.
        **overrides: Field values that take precedence over the file, such
            as CLI options.  ``None`` values are ignored.

    Returns:
        Validated copy-trading settings.

    Raises:
        ConfigError: If a value cannot be parsed or is out of range.

    """
    raw = dict(loader.get_section("copy"))
    raw.update({k: v for k, v in overrides.items() if v is not None})

    kwargs: dict[str, Any] = {}
    if _optional(raw.get("size_multiplier")) is not None:
        kwargs["size_multiplier"] = _decimal("size_multiplier", raw["size_multiplier"])
    if _optional(raw.get("max_order_amount")) is not None:
        kwargs["max_order_amount"] = _decimal("max_order_amount", raw["max_order_amount"])
    if _optional(raw.get("order_type")) is not None:
        try:
            kwargs["order_type"] = OrderType(str(raw["order_type"]).upper())
        except ValueError as exc:
            msg = f"order_type must be FAK or FOK, got {raw['order_type']!r}"
            raise ConfigError(msg) from exc
    if _optional(raw.get("tick_size")) is not None:
        kwargs["tick_size"] = str(raw["tick_size"])
    for flag in ("neg_risk", "enabled"):
        if raw.get(flag) is not None:
            kwargs[flag] = _bool(flag, raw[flag])
    if _optional(raw.get("redeem_interval_minutes")) is not None:
        kwargs["redeem_interval_minutes"] = _float(
            "redeem_interval_minutes", raw["redeem_interval_minutes"]
        )
    if _optional(raw.get("defer_policy")) is not None:
        try:
            kwargs["defer_policy"] = DeferPolicy(str(raw["defer_policy"]).lower())
        except ValueError as exc:
            msg = f"defer_policy must be 'queue' or 'drop', got {raw['defer_policy']!r}"
            raise ConfigError(msg) from exc
    if _optional(raw.get("queue_size")) is not None:
        kwargs["queue_size"] = int(_float("queue_size", raw["queue_size"]))
    for timeout in ("simulation_timeout_seconds", "rpc_timeout_seconds"):
        if _optional(raw.get(timeout)) is not None:
            kwargs[timeout] = _float(timeout, raw[timeout])

    try:
        return CopyConfig(**kwargs)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def load_credentials(
    loader: ConfigLoader,
    *,
    target_wallet: str | None = None,
    require_target: bool = True,
) -> Credentials:
    """Build ``Credentials`` from the ``polymarket``, ``copy`` and ``ledger`` sections.

    Args:
        loader: Loaded configuration.
        target_wallet: Overrides ``copy.target_wallet`` when given.
        require_target: Fail when no target wallet is configured.  Operator
            commands that never watch the feed pass ``False``.

    Returns:
        Credentials for the operator's account.

    Raises:
        ConfigError: If the private key or (when required) the target wallet
            is missing.

    """
    pm = loader.get_section("polymarket")
    private_key = _optional(pm.get("private_key"))
    if private_key is None:
        msg = "POLYMARKET_PRIVATE_KEY is required"
        raise ConfigError(msg)

    target = _optional(target_wallet) or _optional(loader.get("copy.target_wallet"))
    if target is None and require_target:
        msg = "A target wallet is required (TARGET_WALLET or --target)"
        raise ConfigError(msg)

    chain_id_raw = _optional(pm.get("chain_id"))
    return Credentials(
        private_key=str(private_key),
        target_wallet=str(target or ""),
        api_key=_optional(pm.get("api_key")),
        api_secret=_optional(pm.get("api_secret")),
        api_passphrase=_optional(pm.get("api_passphrase")),
        funder_address=_optional(pm.get("funder_address")),
        chain_id=int(_float("chain_id", chain_id_raw)) if chain_id_raw is not None else 137,
        rpc_url=_optional(pm.get("rpc_url")),
        rpc_token=_optional(pm.get("rpc_token")),
        ledger_url=str(_optional(loader.get("ledger.url")) or "sqlite+aiosqlite:///holdings.db"),
    )
