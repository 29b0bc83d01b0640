"""Per-statement alias registry."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from chunk_engine.models.chunk import CTE, TableReference

logger = logging.getLogger(__name__)


def build_aliases(
    tables: Iterable[TableReference],
    ctes: Iterable[CTE] = (),
) -> dict[str, TableReference]:
    """Map lower-cased aliases to the table or CTE reference they name.

    Only direct references with an explicit alias are registered.  A
    reference whose name matches one of *ctes* is stored with ``is_cte``
    set.  Derived-table (subquery) aliases are never registered; they stay
    on :attr:`Subquery.alias`.  When two references share an alias the
    later one wins.

    Parameters
    ----------
    tables:
        The statement's direct table references, in source order.
    ctes:
        CTEs defined by the statement.

    Returns
    -------
    dict[str, TableReference]
        Keys are ``alias.lower()``; values keep the alias's original case.
    """
    cte_names = {cte.name.lower() for cte in ctes}
    aliases: dict[str, TableReference] = {}
    for ref in tables:
        if not ref.alias:
            continue
        if not ref.is_cte and ref.schema_name is None and ref.name.lower() in cte_names:
            ref = ref.model_copy(update={"is_cte": True})
        key = ref.alias.lower()
        if key in aliases:
            logger.debug("Alias %r registered twice; keeping the later reference", ref.alias)
        aliases[key] = ref
    return aliases
