"""Evaluation of document filters, updates and aggregation pipelines.

Both the in-memory and the PostgreSQL user stores evaluate the same
small query language over plain dict documents:

- filters: equality on dotted paths (arrays are searched element-wise),
  ``$eq``, ``$ne``, ``$in``, ``$nin``, ``$exists``, ``$and``, ``$or``
- updates: ``$set`` and ``$unset``
- pipeline stages: ``$match``, ``$unwind``, ``$group`` (with ``$sum``,
  ``$push`` and ``$first``), ``$sort`` and ``$limit``
"""

import copy
from typing import Any, Iterable, Mapping, Sequence

Document = dict[str, Any]


def get_path(document: Any, path: str) -> list[Any]:
    """All values reachable along a dotted path.

    Lists along the way are traversed element by element, unless the next
    path segment is a numeric index. A missing path yields an empty list.
    """
    return _resolve(document, path.split("."))


def _resolve(value: Any, parts: list[str]) -> list[Any]:
    if not parts:
        return [value]
    head, rest = parts[0], parts[1:]
    if isinstance(value, list):
        if head.isdigit():
            index = int(head)
            return _resolve(value[index], rest) if index < len(value) else []
        found: list[Any] = []
        for item in value:
            found.extend(_resolve(item, parts))
        return found
    if isinstance(value, Mapping) and head in value:
        return _resolve(value[head], rest)
    return []


def _equals(values: list[Any], expected: Any) -> bool:
    if expected is None:
        return not values or any(v is None for v in values)
    for value in values:
        if value == expected:
            return True
        if isinstance(value, list) and expected in value:
            return True
    return False


def _is_operator_expression(condition: Any) -> bool:
    return (
        isinstance(condition, Mapping)
        and bool(condition)
        and all(str(key).startswith("$") for key in condition)
    )


def _check_operators(values: list[Any], condition: Mapping[str, Any]) -> bool:
    for operator, operand in condition.items():
        if operator == "$eq":
            ok = _equals(values, operand)
        elif operator == "$ne":
            ok = not _equals(values, operand)
        elif operator == "$in":
            ok = any(_equals(values, item) for item in operand)
        elif operator == "$nin":
            ok = not any(_equals(values, item) for item in operand)
        elif operator == "$exists":
            ok = bool(values) == bool(operand)
        else:
            raise ValueError(f"Unsupported filter operator: {operator}")
        if not ok:
            return False
    return True


def matches(document: Mapping[str, Any], filter: Mapping[str, Any]) -> bool:
    """Check a document against a filter."""
    for key, condition in filter.items():
        if key == "$and":
            if not all(matches(document, sub) for sub in condition):
                return False
            continue
        if key == "$or":
            if not any(matches(document, sub) for sub in condition):
                return False
            continue
        if key.startswith("$"):
            raise ValueError(f"Unsupported filter operator: {key}")

        values = get_path(document, key)
        if _is_operator_expression(condition):
            if not _check_operators(values, condition):
                return False
        elif not _equals(values, condition):
            return False
    return True


def _set_path(document: Document, path: str, value: Any) -> None:
    parts = path.split(".")
    target = document
    for part in parts[:-1]:
        nested = target.get(part)
        if not isinstance(nested, dict):
            nested = {}
            target[part] = nested
        target = nested
    target[parts[-1]] = value


def _unset_path(document: Document, path: str) -> None:
    parts = path.split(".")
    target: Any = document
    for part in parts[:-1]:
        target = target.get(part) if isinstance(target, dict) else None
        if target is None:
            return
    if isinstance(target, dict):
        target.pop(parts[-1], None)


def apply_update(document: Mapping[str, Any], update: Mapping[str, Any]) -> Document:
    """Return a copy of ``document`` with an update applied.

    Raises:
        ValueError: On unsupported update operators or a plain replacement
    """
    updated = copy.deepcopy(dict(document))
    for operator, fields in update.items():
        if operator == "$set":
            for path, value in fields.items():
                _set_path(updated, path, copy.deepcopy(value))
        elif operator == "$unset":
            for path in fields:
                _unset_path(updated, path)
        else:
            raise ValueError(f"Unsupported update operator: {operator}")
    return updated


def evaluate(document: Mapping[str, Any], expression: Any) -> Any:
    """Evaluate a pipeline expression.

    ``"$path"`` reads a field, mappings are evaluated key by key, anything
    else is a literal.
    """
    if isinstance(expression, str) and expression.startswith("$"):
        values = get_path(document, expression[1:])
        if not values:
            return None
        return values[0] if len(values) == 1 else values
    if isinstance(expression, Mapping):
        return {key: evaluate(document, value) for key, value in expression.items()}
    return expression


def _unwind(documents: Iterable[Document], args: Any) -> list[Document]:
    if isinstance(args, str):
        args = {"path": args}
    path = args["path"].lstrip("$")
    preserve = args.get("preserveNullAndEmptyArrays", False)

    unwound = []
    for document in documents:
        values = get_path(document, path)
        value = values[0] if len(values) == 1 else (values or None)
        if isinstance(value, list) and value:
            for item in value:
                copied = copy.deepcopy(document)
                _set_path(copied, path, item)
                unwound.append(copied)
        elif isinstance(value, list) or value is None:
            if preserve:
                unwound.append(document)
        else:
            unwound.append(document)
    return unwound


def _group(documents: Iterable[Document], args: Mapping[str, Any]) -> list[Document]:
    accumulators = {name: acc for name, acc in args.items() if name != "_id"}
    groups: list[Document] = []

    for document in documents:
        key = evaluate(document, args.get("_id"))
        group = next((g for g in groups if g["_id"] == key), None)
        if group is None:
            group = {"_id": key}
            for name, accumulator in accumulators.items():
                (operator,) = accumulator.keys()
                group[name] = [] if operator == "$push" else (0 if operator == "$sum" else None)
            groups.append(group)
            first_in_group = True
        else:
            first_in_group = False

        for name, accumulator in accumulators.items():
            ((operator, expression),) = accumulator.items()
            value = evaluate(document, expression)
            if operator == "$sum":
                if isinstance(value, (int, float)) and not isinstance(value, bool):
                    group[name] += value
            elif operator == "$push":
                group[name].append(value)
            elif operator == "$first":
                if first_in_group:
                    group[name] = value
            else:
                raise ValueError(f"Unsupported accumulator: {operator}")
    return groups


def _sort_key(value: Any) -> tuple:
    return (0,) if value is None else (1, value)


def _sort(documents: list[Document], args: Mapping[str, int]) -> list[Document]:
    ordered = list(documents)
    for path, direction in reversed(list(args.items())):
        ordered.sort(
            key=lambda d: _sort_key(evaluate(d, f"${path}")),
            reverse=direction < 0,
        )
    return ordered


def run_pipeline(
    documents: Iterable[Mapping[str, Any]], pipeline: Sequence[Mapping[str, Any]]
) -> list[Document]:
    """Run aggregation stages over documents.

    Raises:
        ValueError: On unsupported stages or operators
    """
    current = [copy.deepcopy(dict(d)) for d in documents]
    for stage in pipeline:
        ((name, args),) = stage.items()
        if name == "$match":
            current = [d for d in current if matches(d, args)]
        elif name == "$unwind":
            current = _unwind(current, args)
        elif name == "$group":
            current = _group(current, args)
        elif name == "$sort":
            current = _sort(current, args)
        elif name == "$limit":
            current = current[: int(args)]
        else:
            raise ValueError(f"Unsupported pipeline stage: {name}")
    return current
