"""Order named declarations so every dependency is emitted before its users.

Declarations without dependencies come first, sorted by name so the output is
stable across runs. The remaining declarations keep their insertion order,
except that each one is preceded by everything it (transitively) depends on.
"""

from __future__ import annotations

import logging

from specroute.exceptions import CircularDependencyError
from specroute.models import NamedDeclaration

logger = logging.getLogger(__name__)


def order_declarations(declarations: list[NamedDeclaration]) -> list[NamedDeclaration]:
    """Return *declarations* in a dependency-respecting order.

    Args:
        declarations: Declarations in insertion order. Names are expected to
            be unique.

    Returns:
        A new list holding the same declarations, where for every
        declaration ``D`` and every ``E`` in ``D.depends_on`` that is part of
        the list, ``E`` comes before ``D``.

    Raises:
        CircularDependencyError: If declarations depend on each other in a
            cycle. A declaration referencing itself is a cycle of length one.

    Example::

        ordered = order_declarations([pet, category])
        assert ordered.index(category) < ordered.index(pet)
    """
    by_name = {decl.name: decl for decl in declarations}
    position = {decl.name: index for index, decl in enumerate(declarations)}

    ordered = sorted((d for d in declarations if not d.depends_on), key=lambda d: d.name)
    placed = {decl.name for decl in ordered}

    stack: list[str] = []

    def visit(decl: NamedDeclaration) -> None:
        if decl.name in placed:
            return
        if decl.name in stack:
            cycle = stack[stack.index(decl.name):]
            raise CircularDependencyError(cycle, by_name[cycle[0]].source)

        stack.append(decl.name)
        known = []
        for dep in decl.depends_on:
            if dep in by_name:
                known.append(dep)
            else:
                logger.debug("Declaration %s depends on unknown name %s, ignoring", decl.name, dep)
        for dep in sorted(known, key=position.__getitem__):
            visit(by_name[dep])
        stack.pop()

        placed.add(decl.name)
        ordered.append(decl)

    for decl in declarations:
        visit(decl)

    logger.debug("Ordered %d declarations", len(ordered))
    return ordered
