"""
Validación de la declaración (lógica pura).

Sin I/O; solo reglas sobre estructuras de datos. Los errores se acumulan y se
lanzan juntos para que el usuario los corrija en una sola pasada.
"""

from typing import Dict, List, Set

from forja.core.errors import ValidationError
from forja.core.project.models import Declaration, ResourceKind

_KINDS = {k.value for k in ResourceKind}


def validate_identifier(identifier: str) -> None:
    """Valida un identificador de recurso con forma <kind>:<name>."""
    kind, sep, name = identifier.partition(":")
    if not sep or not name:
        raise ValidationError(f"Identificador inválido '{identifier}' (se espera <kind>:<name>)")
    if kind not in _KINDS:
        raise ValidationError(f"Identificador '{identifier}': kind desconocido '{kind}'")


def collect_errors(declaration: Declaration) -> List[str]:
    """
    Devuelve la lista de errores de la declaración; si vacía, es válida.

    Reglas:
    - name único por kind
    - nombres de handler únicos
    - depends_on, notify y triggers apuntan a elementos declarados

    Los ciclos (incluida la autodependencia) los detecta order_resources.
    """
    errors: List[str] = []
    seen: Set[str] = set()
    for resource in declaration.resources:
        if resource.id in seen:
            errors.append(f"Recurso duplicado: {resource.id}")
        seen.add(resource.id)

    handler_names: Dict[str, int] = {}
    for handler in declaration.handlers:
        handler_names[handler.name] = handler_names.get(handler.name, 0) + 1
    for name, count in handler_names.items():
        if count > 1:
            errors.append(f"Handler duplicado: '{name}'")

    for resource in declaration.resources:
        for dep in resource.depends_on:
            try:
                validate_identifier(dep)
            except ValidationError as e:
                errors.append(f"{resource.id}: {e}")
                continue
            if dep not in seen:
                errors.append(f"{resource.id}: depende de un recurso no declarado '{dep}'")
        for handler_name in resource.notify:
            if handler_name not in handler_names:
                errors.append(f"{resource.id}: notifica a un handler no declarado '{handler_name}'")

    for handler in declaration.handlers:
        for trigger in handler.triggers:
            if trigger not in seen:
                errors.append(f"handler '{handler.name}': trigger no declarado '{trigger}'")
    return errors


def validate_declaration(declaration: Declaration) -> None:
    """Lanza ValidationError si la declaración no es válida."""
    errors = collect_errors(declaration)
    if errors:
        raise ValidationError("Declaración inválida:\n  - " + "\n  - ".join(errors))
