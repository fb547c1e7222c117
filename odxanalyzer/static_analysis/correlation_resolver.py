"""Correlation Resolver

Second pass over a finished tree: attaches correlation-set usage to the
Receive shapes that CorrelationDeclaration statement references point at.
"""

from typing import Iterable
import logging

from odxanalyzer.models import ShapeKind, ShapeNode, ShapeTree

logger = logging.getLogger(__name__)


def resolve_correlations(tree: ShapeTree, roots: Iterable[int],
                         event_logger: logging.Logger = None) -> int:
    """
    Bind every correlation declaration reachable from roots to its receives.

    References to unknown identifiers or to non-Receive shapes are ignored.
    A declaration name is never appended twice to the same list.

    Returns:
        Number of bindings added
    """
    log = event_logger or logger
    added = 0

    for declaration in tree.walk(list(roots)):
        if declaration.kind is not ShapeKind.CORRELATION_DECLARATION:
            continue

        for ref in declaration.payload.statement_refs:
            if not ref.statement_oid:
                continue

            target = tree.lookup(ref.statement_oid)
            if target is None or target.kind is not ShapeKind.RECEIVE:
                log.debug(f"[CORRELATION] Ignoring reference {ref.statement_oid} from '{declaration.name}'")
                continue

            if _bind(target, declaration.name, ref.initializes):
                added += 1
                role = "initializes" if ref.initializes else "follows"
                log.debug(f"[CORRELATION] Receive '{target.name}' {role} '{declaration.name}'")

    return added


def _bind(receive: ShapeNode, correlation_set: str, initializes: bool) -> bool:
    payload = receive.payload
    names = payload.initializes_correlation_sets if initializes else payload.follows_correlation_sets
    if correlation_set in names:
        return False
    names.append(correlation_set)
    return True
