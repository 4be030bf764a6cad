"""
streamgate - Model Catalog Helpers

Normalizes heterogeneous backend model listings into `Model` records.
"""

from typing import Any, Iterable, List, Mapping, Optional, Sequence

from ..core.models import Model


def _first(raw: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def normalize_model(
    raw: Mapping[str, Any],
    id_keys: Sequence[str] = ("id", "name"),
    name_keys: Sequence[str] = ("display_name", "displayName", "name", "id"),
    context_keys: Sequence[str] = ("context_length", "context_window"),
    is_thinking: bool = False,
    context_length: Optional[int] = None,
) -> Optional[Model]:
    """
    Build a Model from a raw mapping.

    Returns None when no id can be found.
    """
    if not isinstance(raw, Mapping):
        return None

    model_id = _first(raw, id_keys)
    if model_id is None:
        return None

    if context_length is None:
        value = _first(raw, context_keys)
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
            context_length = int(value)

    description = raw.get("description")
    return Model(
        id=str(model_id),
        name=str(_first(raw, name_keys) or model_id),
        context_length=context_length,
        is_thinking=bool(is_thinking),
        description=description if isinstance(description, str) and description else None,
    )


def dedupe_models(models: Iterable[Optional[Model]]) -> List[Model]:
    """Drop empty entries and repeated ids, keeping the first occurrence."""
    seen = set()
    result = []
    for model in models:
        if model is None or model.id in seen:
            continue
        seen.add(model.id)
        result.append(model)
    return result


def copy_models(models: Iterable[Model]) -> List[Model]:
    """Independent copies of a static catalog, safe for callers to mutate."""
    return [
        Model(
            id=m.id,
            name=m.name,
            context_length=m.context_length,
            is_thinking=m.is_thinking,
            description=m.description,
        )
        for m in models
    ]


def first_context_length(providers: Any) -> Optional[int]:
    """First positive `context_length` among a model's serving providers."""
    if not isinstance(providers, list):
        return None
    for entry in providers:
        if isinstance(entry, dict):
            value = entry.get("context_length")
            if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
                return int(value)
    return None
